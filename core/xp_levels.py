"""经验值与等级

等级规则：
等级 = 经验值落在的区间（5 档，闭区间，最高档无上限）

  Lv1: 0    - 99
  Lv2: 100  - 249
  Lv3: 250  - 499
  Lv4: 500  - 999
  Lv5: 1000 - ∞

等级是经验值的纯函数，数据库里的 level 字段只是缓存。
"""

from __future__ import annotations

from typing import Any, NamedTuple

# ============================================================================
# 行为奖励表（运行时只读）
# ============================================================================

XP_REWARDS: dict[str, int] = {
    "ai_chat_message": 5,
    "liveassist_scan": 10,
    "video_watch": 3,
    "community_post": 20,
    "community_comment": 10,
    "post_solved": 50,
    "video_upload": 30,
    "daily_login": 10,
}


# ============================================================================
# 等级区间
# ============================================================================


class LevelBand(NamedTuple):
    level: int
    min_xp: int
    max_xp: int | None  # None = 无上限


LEVEL_THRESHOLDS: tuple[LevelBand, ...] = (
    LevelBand(1, 0, 99),
    LevelBand(2, 100, 249),
    LevelBand(3, 250, 499),
    LevelBand(4, 500, 999),
    LevelBand(5, 1000, None),
)

MIN_LEVEL = LEVEL_THRESHOLDS[0].level
MAX_LEVEL = LEVEL_THRESHOLDS[-1].level


def normalize_experience(value: Any) -> int:
    """数据库里的 NULL / 脏数据统一当作 0，再交给 level_from_experience。"""
    if value is None or isinstance(value, bool):
        return 0
    try:
        xp = int(value)
    except (TypeError, ValueError):
        return 0
    return max(0, xp)


def level_from_experience(xp: int) -> int:
    """经验值 -> 等级（1-5）。

    Args:
        xp: 非负整数；调用方负责先用 normalize_experience 处理缺失值

    Raises:
        ValueError: 负数、布尔值或非整数
    """
    if isinstance(xp, bool) or not isinstance(xp, int):
        raise ValueError(f"experience must be an int, got {xp!r}")
    if xp < 0:
        raise ValueError(f"experience must be >= 0, got {xp}")

    for band in LEVEL_THRESHOLDS:
        if xp >= band.min_xp and (band.max_xp is None or xp <= band.max_xp):
            return band.level
    return MAX_LEVEL


def _band_for_level(level: int) -> LevelBand:
    for band in LEVEL_THRESHOLDS:
        if band.level == level:
            return band
    raise ValueError(f"unknown level: {level!r}")


def min_experience_for_level(level: int) -> int:
    """该等级的起始经验值（用于进度条）。"""
    return _band_for_level(level).min_xp


def min_experience_for_next_level(level: int) -> int:
    """下一级的起始经验值；满级时返回满级自身的起点（表示没有下一级）。"""
    _band_for_level(level)
    if level >= MAX_LEVEL:
        return min_experience_for_level(MAX_LEVEL)
    return min_experience_for_level(level + 1)


def level_progress(xp: Any) -> dict:
    """前端展示用的等级进度（字段名与客户端保持一致）。"""
    xp = normalize_experience(xp)
    level = level_from_experience(xp)
    return {
        "xp": xp,
        "level": level,
        "currentLevelXp": min_experience_for_level(level),
        "nextLevelXp": min_experience_for_next_level(level),
        "isMaxLevel": level >= MAX_LEVEL,
    }
