"""业务/工具函数集合（为了减少文件数量集中在一个模块里）。

阅读提示（可读性优先）：
1) 这个文件只放“可复用”的函数：参数清洗、序列化、简单校验、少量 DB 操作封装等。
2) 路由层（`app_routes.py`）只做 request/response/权限控制，不要塞复杂业务逻辑。
3) 经验奖励的规则全部在 `core/reward_engine.py`，这里只负责取引擎实例和拼响应字段。
4) 本文件从上到下按“通用 -> 业务”的顺序排：
   - 常量与约定
   - API 响应 / DB 提交
   - 参数清洗
   - 账号/密码
   - 经验奖励
   - 序列化（用户/视频/社区/通知）
   - 用户行为（点赞/收藏）
   - 视频列表 / 删除
   - 关注
   - 通知
   - 举报
"""

from __future__ import annotations

from flask import current_app, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from core.reward_engine import GrantResult, RewardEngine
from core.xp_levels import level_progress
from models import CommunityComment, Follow, Notification, Report, User, UserAction, Video, VideoComment, db

# ============================================================
# 1) 常量与约定（尽量集中，便于改动）
# ============================================================

PASSWORD_HASH_METHOD = "pbkdf2:sha256:260000"
PASSWORD_SALT_LENGTH = 8  # keep hash length within DB column limits
MIN_PASSWORD_LENGTH = 6

SUPPORTED_ACTIONS = {"like", "save"}
MAX_VIDEO_DURATION = 60  # 秒
MAX_VIDEO_TITLE = 60
MAX_VIDEO_DESCRIPTION = 300
MAX_POST_TITLE = 150
POST_STATUSES = {"open", "answered", "solved"}

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 50
FEED_SECTION_SIZE = 10
FEED_POPULAR_DAYS = 30
NOTIFICATION_LIMIT = 50

REPORT_CONTENT_TYPES = {"video", "profile", "comment"}
MAX_REPORT_REASON = 100

REWARD_ENGINE_KEY = "reward_engine"


# ============================================================
# 2) 通用：API 响应 / DB 提交
# ============================================================


def api_ok(msg: str = "OK", *, code: int = 200, http_status: int = 200, **extra):
    """统一成功返回结构：{code,msg,...}"""
    return jsonify({"code": code, "msg": msg, **extra}), http_status


def api_error(msg: str, *, code: int = 400, http_status: int = 400, **extra):
    """统一失败返回结构：({code,msg,...}, http_status)"""
    return jsonify({"code": code, "msg": msg, **extra}), http_status


def commit_or_rollback(session) -> bool:
    """提交事务；遇到 IntegrityError 自动回滚并返回 False。"""
    try:
        session.commit()
        return True
    except IntegrityError:
        session.rollback()
        return False


# ============================================================
# 3) 通用：参数清洗
# ============================================================


def clamp_int(value: int, *, lo: int, hi: int) -> int:
    """把整数夹在 [lo, hi] 之间（防止前端乱传参数）。"""
    return max(lo, min(int(value), hi))


def clean_text(value, *, max_len: int | None = None) -> str:
    """去首尾空白；非字符串一律当空串。"""
    if not isinstance(value, str):
        return ""
    value = value.strip()
    if max_len is not None:
        value = value[:max_len]
    return value


def parse_positive_int(value) -> int | None:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return None
    return n if n > 0 else None


# ============================================================
# 4) 账号/密码（注册/登录用）
# ============================================================


def normalize_email(value) -> str:
    return clean_text(value).lower()


def is_hashed_password(value: str) -> bool:
    """粗略判断字符串看起来是否像 Werkzeug 的密码哈希。"""
    return isinstance(value, str) and value.count("$") >= 2


def hash_password(password: str) -> str:
    """生成密码哈希；统一算法与 salt 长度。"""
    return generate_password_hash(password, method=PASSWORD_HASH_METHOD, salt_length=PASSWORD_SALT_LENGTH)


def verify_password(stored: str, candidate: str) -> bool:
    """安全校验密码；遇到坏数据返回 False（不抛异常）。"""
    if not stored or not candidate or not is_hashed_password(stored):
        return False
    try:
        return check_password_hash(stored, candidate)
    except ValueError:
        return False


def default_display_name(email: str) -> str:
    """注册时兜底昵称：取邮箱 @ 前面的部分。"""
    local = (email or "").split("@", 1)[0].strip()
    return local[:100] or "user"


def email_exists(email: str) -> bool:
    """邮箱查重（邮箱作为唯一登录凭证）。"""
    if not email:
        return False
    return db.session.query(User.query.filter_by(email=email).exists()).scalar()


# ============================================================
# 5) 经验奖励：取引擎 / 拼响应字段
# ============================================================


def get_reward_engine() -> RewardEngine:
    return current_app.extensions[REWARD_ENGINE_KEY]


def reward_fields(result: GrantResult) -> dict:
    """把发放结果折叠进主操作的响应里；发放失败或被抑制时 xpAwarded=0。"""
    awarded = result.success and result.xp_awarded > 0
    fields = {
        "xpAwarded": result.xp_awarded if awarded else 0,
        "leveledUp": bool(awarded and result.leveled_up),
    }
    if awarded:
        fields.update(
            {
                "totalXp": result.xp,
                "level": result.level,
                "nextLevelXp": result.next_level_xp,
                "currentLevelXp": result.current_level_xp,
            }
        )
    return fields


# ============================================================
# 6) 序列化：用户 / 视频 / 社区 / 通知
# ============================================================


def _iso(value):
    return value.isoformat() if value else None


def serialize_user(user, *, private: bool = False, is_following: bool | None = None) -> dict:
    """统一前端用户结构；level 以经验值重新推导，不信任缓存列。"""
    data = {
        "id": user.id,
        "displayName": user.display_name,
        "bio": user.bio,
        "avatarUrl": user.avatar_url,
        "followersCount": user.followers_count or 0,
        "followingCount": user.following_count or 0,
        **level_progress(user.xp),
        "createdAt": _iso(user.created_at),
    }
    if private:
        data["email"] = user.email
    if is_following is not None:
        data["isFollowing"] = is_following
    return data


def serialize_user_brief(user) -> dict:
    """粉丝/关注列表里的精简用户结构。"""
    return {
        "id": user.id,
        "displayName": user.display_name,
        "avatarUrl": user.avatar_url,
        "bio": user.bio,
    }


def serialize_video(v, *, author=None, is_liked: bool = False, is_saved: bool = False) -> dict:
    """统一前端视频结构（多接口复用）。"""
    return {
        "id": v.id,
        "title": v.title,
        "description": v.description,
        "category": v.category,
        "videoUrl": v.video_url,
        "thumbnailUrl": v.thumbnail_url,
        "duration": v.duration or 0,
        "likesCount": v.likes_count or 0,
        "commentsEnabled": bool(v.comments_enabled),
        "authorId": v.author_id,
        "authorName": author.display_name if author else None,
        "authorAvatar": author.avatar_url if author else None,
        "isLiked": is_liked,
        "isSaved": is_saved,
        "createdAt": _iso(v.created_at),
    }


def serialize_videos(videos, *, viewer_id: int | None = None) -> list[dict]:
    """批量序列化：作者和点赞/收藏状态各查一次，避免 N+1。"""
    authors = users_by_id(v.author_id for v in videos)
    flags = action_flags_by_video(viewer_id, [v.id for v in videos])
    return [
        serialize_video(v, author=authors.get(v.author_id), **flags.get(v.id, _NO_FLAGS))
        for v in videos
    ]


def serialize_post(p, *, author=None) -> dict:
    return {
        "id": p.id,
        "title": p.title,
        "description": p.description,
        "category": p.category,
        "imageUrl": p.image_url,
        "status": p.status,
        "commentsCount": p.comments_count or 0,
        "authorId": p.author_id,
        "authorName": author.display_name if author else None,
        "authorAvatar": author.avatar_url if author else None,
        "createdAt": _iso(p.created_at),
        "updatedAt": _iso(p.updated_at),
    }


def serialize_comment(c, *, author=None, linked_video=None) -> dict:
    data = {
        "id": c.id,
        "postId": c.post_id,
        "content": c.content,
        "isSolution": bool(c.is_solution),
        "authorId": c.user_id,
        "authorName": author.display_name if author else None,
        "authorAvatar": author.avatar_url if author else None,
        "linkedVideoId": c.linked_video_id,
        "createdAt": _iso(c.created_at),
    }
    if linked_video is not None:
        data["linkedVideoTitle"] = linked_video.title
        data["linkedVideoThumbnail"] = linked_video.thumbnail_url
    return data


def serialize_video_comment(c, *, author=None) -> dict:
    return {
        "id": c.id,
        "videoId": c.video_id,
        "content": c.content,
        "authorId": c.user_id,
        "authorName": author.display_name if author else None,
        "authorAvatar": author.avatar_url if author else None,
        "createdAt": _iso(c.created_at),
    }


def serialize_notification(n, *, related_user=None, related_video=None) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "isRead": bool(n.is_read),
        "relatedUserId": n.related_user_id,
        "relatedUserName": related_user.display_name if related_user else None,
        "relatedUserAvatar": related_user.avatar_url if related_user else None,
        "relatedVideoId": n.related_video_id,
        "relatedVideoTitle": related_video.title if related_video else None,
        "createdAt": _iso(n.created_at),
    }


def users_by_id(ids) -> dict:
    ids = {i for i in ids if i}
    if not ids:
        return {}
    return {u.id: u for u in User.query.filter(User.id.in_(ids)).all()}


def videos_by_id(ids) -> dict:
    ids = {i for i in ids if i}
    if not ids:
        return {}
    return {v.id: v for v in Video.query.filter(Video.id.in_(ids)).all()}


# ============================================================
# 7) 用户行为：点赞/收藏
# ============================================================

_NO_FLAGS = {"is_liked": False, "is_saved": False}


def ensure_action_allowed(action_type: str) -> bool:
    return action_type in SUPPORTED_ACTIONS


def get_action_record(user_id: int, video_id: int, action_type: str):
    return UserAction.query.filter_by(user_id=user_id, video_id=video_id, action_type=action_type).first()


def create_action(user_id: int, video_id: int, action_type: str) -> bool:
    """新增点赞/收藏；重复请求由唯一约束兜底，返回 False。点赞同步 likes_count 并通知作者。"""
    if not ensure_action_allowed(action_type) or not video_id:
        return False
    if get_action_record(user_id, video_id, action_type):
        return False
    db.session.add(UserAction(user_id=user_id, video_id=video_id, action_type=action_type))
    if action_type == "like":
        Video.query.filter_by(id=video_id).update({Video.likes_count: Video.likes_count + 1}, synchronize_session=False)
        video = db.session.get(Video, video_id)
        actor = db.session.get(User, user_id)
        if video is not None and actor is not None:
            notify(
                video.author_id,
                "like",
                "新的点赞",
                f"{actor.display_name} 赞了你的视频《{video.title}》",
                related_user_id=user_id,
                related_video_id=video_id,
            )
    return commit_or_rollback(db.session)


def delete_action(user_id: int, video_id: int, action_type: str) -> bool:
    action = get_action_record(user_id, video_id, action_type)
    if not action:
        return False
    db.session.delete(action)
    if action_type == "like":
        Video.query.filter(Video.id == video_id, Video.likes_count > 0).update(
            {Video.likes_count: Video.likes_count - 1}, synchronize_session=False
        )
    db.session.commit()
    return True


def user_action_flags(user_id: int | None, video_id: int) -> dict:
    """当前用户对某个视频的点赞/收藏状态。"""
    return action_flags_by_video(user_id, [video_id]).get(video_id, dict(_NO_FLAGS))


def action_flags_by_video(user_id: int | None, video_ids) -> dict:
    """{video_id: {is_liked, is_saved}}；未登录或没有记录的视频不出现在结果里。"""
    if not user_id or not video_ids:
        return {}
    flags: dict = {}
    rows = UserAction.query.filter(UserAction.user_id == user_id, UserAction.video_id.in_(video_ids)).all()
    for a in rows:
        entry = flags.setdefault(a.video_id, dict(_NO_FLAGS))
        if a.action_type == "like":
            entry["is_liked"] = True
        elif a.action_type == "save":
            entry["is_saved"] = True
    return flags


# ============================================================
# 8) 视频：列表查询 / 删除
# ============================================================


def visible_videos():
    """列表类接口的基础查询：排除已下架视频。"""
    return Video.query.filter(Video.is_flagged.is_not(True))


def delete_video(video_id: int, author_id: int) -> bool:
    """作者删除自己的视频；连带清理点赞/收藏、评论，并断开社区评论与通知里的引用。"""
    video = Video.query.filter_by(id=video_id, author_id=author_id).first()
    if video is None:
        return False
    UserAction.query.filter_by(video_id=video_id).delete(synchronize_session=False)
    VideoComment.query.filter_by(video_id=video_id).delete(synchronize_session=False)
    CommunityComment.query.filter_by(linked_video_id=video_id).update(
        {CommunityComment.linked_video_id: None}, synchronize_session=False
    )
    Notification.query.filter_by(related_video_id=video_id).update(
        {Notification.related_video_id: None}, synchronize_session=False
    )
    db.session.delete(video)
    db.session.commit()
    return True


# ============================================================
# 9) 关注
# ============================================================


def is_following(follower_id: int | None, following_id: int) -> bool:
    if not follower_id:
        return False
    query = Follow.query.filter_by(follower_id=follower_id, following_id=following_id)
    return db.session.query(query.exists()).scalar()


def _bump_follow_counts(follower_id: int, following_id: int, delta: int) -> None:
    if delta > 0:
        User.query.filter_by(id=following_id).update(
            {User.followers_count: User.followers_count + delta}, synchronize_session=False
        )
        User.query.filter_by(id=follower_id).update(
            {User.following_count: User.following_count + delta}, synchronize_session=False
        )
    else:
        User.query.filter(User.id == following_id, User.followers_count > 0).update(
            {User.followers_count: User.followers_count + delta}, synchronize_session=False
        )
        User.query.filter(User.id == follower_id, User.following_count > 0).update(
            {User.following_count: User.following_count + delta}, synchronize_session=False
        )


def toggle_follow(follower_id: int, following_id: int) -> bool:
    """关注/取消关注（切换），返回切换后的状态；关注时通知对方。"""
    existing = Follow.query.filter_by(follower_id=follower_id, following_id=following_id).first()
    if existing is not None:
        db.session.delete(existing)
        _bump_follow_counts(follower_id, following_id, -1)
        db.session.commit()
        return False

    db.session.add(Follow(follower_id=follower_id, following_id=following_id))
    _bump_follow_counts(follower_id, following_id, 1)
    follower = db.session.get(User, follower_id)
    notify(
        following_id,
        "follow",
        "新的粉丝",
        f"{follower.display_name} 关注了你",
        related_user_id=follower_id,
    )
    # 并发的重复关注撞唯一约束：另一个请求已经关注成功
    commit_or_rollback(db.session)
    return True


def list_followers(user_id: int) -> list:
    return (
        User.query.join(Follow, Follow.follower_id == User.id)
        .filter(Follow.following_id == user_id)
        .order_by(Follow.created_at.desc(), Follow.id.desc())
        .all()
    )


def list_following(user_id: int) -> list:
    return (
        User.query.join(Follow, Follow.following_id == User.id)
        .filter(Follow.follower_id == user_id)
        .order_by(Follow.created_at.desc(), Follow.id.desc())
        .all()
    )


# ============================================================
# 10) 通知
# ============================================================


def notify(user_id, type_: str, title: str, message: str, *, related_user_id=None, related_video_id=None) -> None:
    """往当前事务里加一条通知（由调用方统一 commit）；自己触发的事件不通知自己。"""
    if not user_id or user_id == related_user_id:
        return
    db.session.add(
        Notification(
            user_id=user_id,
            type=type_,
            title=title,
            message=message,
            related_user_id=related_user_id,
            related_video_id=related_video_id,
        )
    )


def recent_notifications(user_id: int) -> list[dict]:
    rows = (
        Notification.query.filter_by(user_id=user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(NOTIFICATION_LIMIT)
        .all()
    )
    users = users_by_id(n.related_user_id for n in rows)
    videos = videos_by_id(n.related_video_id for n in rows)
    return [
        serialize_notification(n, related_user=users.get(n.related_user_id), related_video=videos.get(n.related_video_id))
        for n in rows
    ]


# ============================================================
# 11) 举报
# ============================================================


def find_open_report(reporter_id: int, content_type: str, content_id, target_user_id):
    """同一举报人对同一对象只能有一条未处理的举报（content_id / target_user_id 为空也算同一对象）。"""
    return Report.query.filter_by(
        reporter_id=reporter_id,
        content_type=content_type,
        content_id=content_id,
        target_user_id=target_user_id,
        status="open",
    ).first()


def create_report(reporter_id: int, *, content_type: str, reason: str, message=None, content_id=None, target_user_id=None):
    """新建举报；已有未处理的同类举报时返回 None。"""
    if find_open_report(reporter_id, content_type, content_id, target_user_id) is not None:
        return None
    report = Report(
        reporter_id=reporter_id,
        target_user_id=target_user_id,
        content_id=content_id,
        content_type=content_type,
        reason=reason,
        message=message or None,
    )
    db.session.add(report)
    db.session.commit()
    return report
