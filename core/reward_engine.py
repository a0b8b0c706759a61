"""经验奖励引擎：给用户发放经验值并维护等级缓存。

四种发放方式：
- grant                 直接发放指定数量
- grant_for_action      按行为奖励表发放
- grant_once_per_scope  每个 (用户, 作用域) 只发放一次，靠数据库唯一约束保证
- grant_throttled       冷却窗口内不重复发放，进程内限流，尽力而为

约定：
1) 奖励失败不能影响调用方的主操作（上传/评论/登录），所以对外一律返回 GrantResult，不抛异常。
2) 调用前主操作必须已经 commit：引擎会在同一个 db.session 上开启并提交自己的事务，
   session 里还有未提交的改动时直接拒绝（uncommitted_changes），不替调用方提交或回滚。
3) 经验值用一条 UPDATE 原子自增（xp = xp + :amount），等级在同一条语句里用 CASE 算出。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping

from sqlalchemy import case, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .cooldown_cache import CooldownCache
from .xp_levels import (
    LEVEL_THRESHOLDS,
    MIN_LEVEL,
    XP_REWARDS,
    level_from_experience,
    min_experience_for_level,
    min_experience_for_next_level,
    normalize_experience,
)

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 5 * 60


# ============================================================================
# 错误类型（内部抛出，在公开方法边界转成失败结果）
# ============================================================================


class RewardError(Exception):
    code = "reward_error"


class UserNotFound(RewardError):
    code = "user_not_found"


class UnknownAction(RewardError):
    code = "unknown_action"


class InvalidAmount(RewardError):
    code = "invalid_amount"


class InvalidScope(RewardError):
    code = "invalid_scope"


class PersistenceError(RewardError):
    code = "persistence_error"


class UncommittedWork(RewardError):
    code = "uncommitted_changes"


# ============================================================================
# 发放结果
# ============================================================================

# (属性名, 返回给客户端的字段名)
_WIRE_FIELDS = (
    ("success", "success"),
    ("xp", "xp"),
    ("level", "level"),
    ("xp_awarded", "xpAwarded"),
    ("leveled_up", "leveledUp"),
    ("next_level_xp", "nextLevelXp"),
    ("current_level_xp", "currentLevelXp"),
    ("granted", "granted"),
    ("error", "error"),
)


@dataclass(frozen=True)
class GrantResult:
    """一次发放的结果。

    granted 只在幂等/限流发放里有意义：False 表示“已经发过/冷却中”，属于正常结果。
    """

    success: bool
    xp: int | None = None
    level: int | None = None
    xp_awarded: int = 0
    leveled_up: bool = False
    next_level_xp: int | None = None
    current_level_xp: int | None = None
    granted: bool | None = None
    error: str | None = None

    @classmethod
    def failure(cls, error: str, **extra) -> "GrantResult":
        return cls(success=False, error=error, **extra)

    @classmethod
    def suppressed(cls) -> "GrantResult":
        return cls(success=True, xp_awarded=0, granted=False)

    def to_dict(self) -> dict:
        """序列化为客户端字段（值为 None 的字段省略）。"""
        out = {}
        for attr, key in _WIRE_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                out[key] = value
        return out


def level_expression(xp_expr):
    """SQL 侧的等级计算，与 level_from_experience 使用同一张区间表。"""
    whens = [(xp_expr >= band.min_xp, band.level) for band in reversed(LEVEL_THRESHOLDS) if band.min_xp > 0]
    return case(*whens, else_=MIN_LEVEL)


class RewardEngine:
    """经验奖励引擎（每个 Flask app 一个实例，放在 app.extensions 里）。"""

    def __init__(
        self,
        db,
        user_model,
        marker_model,
        *,
        catalog: Mapping[str, int] | None = None,
        cooldowns: CooldownCache | None = None,
        default_cooldown: float = DEFAULT_COOLDOWN_SECONDS,
    ):
        """
        Args:
            db: Flask-SQLAlchemy 实例
            user_model: User ORM 模型类（需要 id / xp / level 列）
            marker_model: XpRewardMarker ORM 模型类
            catalog: 行为奖励表，默认 XP_REWARDS
            cooldowns: 限流用的冷却缓存，默认新建一个
            default_cooldown: grant_throttled 的默认窗口（秒）
        """
        self.db = db
        self.User = user_model
        self.Marker = marker_model
        self.catalog = dict(catalog if catalog is not None else XP_REWARDS)
        for amount in self.catalog.values():
            self._check_amount(amount)
        self.cooldowns = cooldowns if cooldowns is not None else CooldownCache()
        self.default_cooldown = default_cooldown

    # ------------------------------------------------------------------
    # 公开接口
    # ------------------------------------------------------------------

    def grant(self, user_id: Any, amount: int, reason: str = "custom") -> GrantResult:
        """给用户直接加 amount 点经验。"""
        try:
            self._check_user_id(user_id)
            self._check_amount(amount)
            return self._apply_grant(user_id, amount, reason)
        except RewardError as exc:
            return self._failed(exc, user_id, reason)

    def grant_for_action(self, user_id: Any, action_id: str) -> GrantResult:
        """按行为奖励表发放。"""
        try:
            amount = self.amount_for(action_id)
            self._check_user_id(user_id)
            return self._apply_grant(user_id, amount, action_id)
        except RewardError as exc:
            return self._failed(exc, user_id, action_id)

    def grant_once_per_scope(self, user_id: Any, action_id: str, scope_kind: str, scope_id: Any) -> GrantResult:
        """每个 (用户, scope_kind, scope_id) 只发放一次。

        标记插入与经验自增在同一个事务里；插入撞唯一约束即视为“已发放”，返回 granted=False。
        """
        try:
            amount = self.amount_for(action_id)
            self._check_user_id(user_id)
            scope_kind, scope_id = self._check_scope(scope_kind, scope_id)
            marker = self.Marker(scope_kind=scope_kind, user_id=user_id, scope_id=scope_id)
            result = self._apply_grant(user_id, amount, action_id, marker=marker)
        except RewardError as exc:
            return self._failed(exc, user_id, action_id)

        if result is None:
            logger.debug("xp for %s already granted to user %s (%s=%s)", action_id, user_id, scope_kind, scope_id)
            return GrantResult.suppressed()
        return replace(result, granted=True)

    def grant_throttled(
        self,
        user_id: Any,
        action_id: str,
        scope_kind: str,
        scope_id: Any,
        cooldown: float | None = None,
    ) -> GrantResult:
        """冷却窗口内对同一 (用户, 作用域) 不重复发放；冷却状态只在本进程内存里。"""
        try:
            self.amount_for(action_id)
            self._check_user_id(user_id)
            scope_kind, scope_id = self._check_scope(scope_kind, scope_id)
        except RewardError as exc:
            return self._failed(exc, user_id, action_id)

        window = self.default_cooldown if cooldown is None else float(cooldown)
        key = f"{user_id}:{scope_kind}:{scope_id}"
        if not self.cooldowns.try_acquire(key, window):
            logger.debug("xp cooldown active for user %s on %s", user_id, key)
            return GrantResult.suppressed()

        result = self.grant_for_action(user_id, action_id)
        if not result.success:
            self.cooldowns.release(key)
            return result
        return replace(result, granted=True)

    def amount_for(self, action_id: str) -> int:
        try:
            amount = self.catalog.get(action_id)
        except TypeError:
            amount = None
        if amount is None:
            raise UnknownAction(f"unknown action: {action_id!r}")
        return amount

    # ------------------------------------------------------------------
    # 内部实现
    # ------------------------------------------------------------------

    @staticmethod
    def _check_user_id(user_id: Any) -> None:
        if user_id is None or user_id == "":
            raise UserNotFound("no user id provided")

    @staticmethod
    def _check_amount(amount: Any) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount(f"invalid xp amount: {amount!r}")

    @staticmethod
    def _check_scope(scope_kind: Any, scope_id: Any) -> tuple[str, str]:
        kind = (scope_kind or "").strip() if isinstance(scope_kind, str) else ""
        sid = "" if scope_id is None else str(scope_id).strip()
        if not kind or not sid:
            raise InvalidScope(f"invalid scope: {scope_kind!r}/{scope_id!r}")
        return kind, sid

    def _apply_grant(self, user_id: Any, amount: int, reason: str, *, marker=None) -> GrantResult | None:
        """在一个事务里完成：锁用户行 -> (插入标记) -> 原子自增 -> 读回 -> 提交。

        返回 None 表示标记已存在（重复发放被抑制）。
        """
        session = self.db.session
        User = self.User
        users = User.__table__
        if session.new or session.dirty or session.deleted:
            raise UncommittedWork("session has uncommitted changes")

        try:
            row = session.query(User.xp, User.level).filter(User.id == user_id).with_for_update().first()
            if row is None:
                session.rollback()
                raise UserNotFound(f"user not found: {user_id}")
            previous_level = row.level or level_from_experience(normalize_experience(row.xp))

            if marker is not None:
                session.add(marker)
                try:
                    session.flush()
                except IntegrityError:
                    session.rollback()
                    return None

            # level 放在前面：MySQL 按顺序求值 SET，后面的列会看到前面已更新的值
            new_xp_expr = func.coalesce(users.c.xp, 0) + amount
            session.execute(
                update(users)
                .where(users.c.id == user_id)
                .ordered_values(
                    (users.c.level, level_expression(new_xp_expr)),
                    (users.c.xp, new_xp_expr),
                )
            )
            new_xp, new_level = session.query(User.xp, User.level).filter(User.id == user_id).one()
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("failed to persist %s xp for user %s (%s)", amount, user_id, reason)
            raise PersistenceError(str(exc)) from exc

        leveled_up = new_level > previous_level
        logger.info(
            "awarded %s xp to user %s for %s. total=%s level=%s%s",
            amount,
            user_id,
            reason,
            new_xp,
            new_level,
            " (level up)" if leveled_up else "",
        )
        return GrantResult(
            success=True,
            xp=new_xp,
            level=new_level,
            xp_awarded=amount,
            leveled_up=leveled_up,
            next_level_xp=min_experience_for_next_level(new_level),
            current_level_xp=min_experience_for_level(new_level),
        )

    @staticmethod
    def _failed(exc: RewardError, user_id: Any, reason: str) -> GrantResult:
        if not isinstance(exc, PersistenceError):
            logger.warning("xp grant for %s to user %s rejected: %s", reason, user_id, exc)
        return GrantResult.failure(exc.code)
