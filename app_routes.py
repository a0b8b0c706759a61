"""路由层（Blueprint）全集（为了减少文件数量集中在一个模块里）。

阅读提示（可读性优先）：
1) 这个文件只做“薄路由”：取参数 -> 校验/登录态 -> 主操作 commit -> 调用经验引擎 -> 返回。
2) 主操作必须先提交，再发经验；发放失败只会让 xpAwarded=0，不影响主操作的状态码。
3) 从上到下按“用户访问路径”排序：
   - 认证（/api/auth/register /login /logout /me /password）
   - API：用户（主页 / 作品 / 关注 / 粉丝列表）
   - API：视频（列表 / 推荐流 / 上传 / 详情 / 删除 / 观看 / 点赞 / 收藏 / 评论 / 举报）
   - API：社区（列表 / 发帖 / 详情 / 状态 / 评论 / 标记解答）
   - API：通知（列表 / 未读数 / 已读 / 删除）
   - API：举报（/api/reports）
   - API：经验（/api/xp/me /api/xp/levels）
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from flask import Blueprint, current_app, request
from flask_login import current_user, login_required, login_user, logout_user

from core.xp_levels import LEVEL_THRESHOLDS, XP_REWARDS, level_progress
from models import CommunityComment, CommunityPost, Notification, User, Video, VideoComment, db

import app_services as svc


# 对外只暴露 2 个 Blueprint，`app.py` 会负责注册。
__all__ = ["auth_bp", "api_bp"]


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
api_bp = Blueprint("api", __name__, url_prefix="/api")


# ============================================================
# 1) 认证（Auth）
# ============================================================


@auth_bp.post("/register")
def register():
    """注册：新用户 xp=0 / level=1，注册成功后直接登录。"""
    data = request.get_json(silent=True) or {}
    email = svc.normalize_email(data.get("email"))
    password = data.get("password")
    if not email or not isinstance(password, str) or not password:
        return svc.api_error("请输入邮箱和密码")
    if len(password) < svc.MIN_PASSWORD_LENGTH:
        return svc.api_error("密码至少 6 位")
    if svc.email_exists(email):
        return svc.api_error("邮箱已注册", code=409, http_status=409)

    user = User(
        email=email,
        display_name=svc.clean_text(data.get("displayName"), max_len=100) or svc.default_display_name(email),
        password=svc.hash_password(password),
        bio=svc.clean_text(data.get("bio"), max_len=150) or None,
        xp=0,
        level=1,
    )
    db.session.add(user)
    if not svc.commit_or_rollback(db.session):
        return svc.api_error("邮箱已注册", code=409, http_status=409)

    login_user(user)
    return svc.api_ok("注册成功", code=201, http_status=201, user=svc.serialize_user(user, private=True))


@auth_bp.post("/login")
def login():
    """登录：校验密码；每个自然日（UTC）首次登录发放一次经验。"""
    data = request.get_json(silent=True) or {}
    email = svc.normalize_email(data.get("email"))
    password = data.get("password")
    if not email or not isinstance(password, str) or not password:
        return svc.api_error("请输入邮箱和密码")

    user = User.query.filter_by(email=email).first()
    if not user or not svc.verify_password(user.password, password):
        return svc.api_error("邮箱或密码错误", code=401, http_status=401)

    login_user(user)
    user_id = user.id
    today = datetime.now(timezone.utc).date().isoformat()
    result = svc.get_reward_engine().grant_once_per_scope(user_id, "daily_login", "login_date", today)

    user = db.session.get(User, user_id)
    return svc.api_ok("登录成功", user=svc.serialize_user(user, private=True), **svc.reward_fields(result))


@auth_bp.post("/logout")
@login_required
def logout():
    """退出登录。"""
    logout_user()
    return svc.api_ok("已退出")


@auth_bp.get("/me")
@login_required
def me():
    """当前登录用户（含等级进度）。"""
    return svc.api_ok(user=svc.serialize_user(current_user, private=True))


@auth_bp.put("/me")
@login_required
def update_me():
    """修改资料：只改请求里带了的字段；经验值/等级不允许从这里改。"""
    data = request.get_json(silent=True) or {}
    user = db.session.get(User, current_user.id)

    if "displayName" in data:
        display_name = svc.clean_text(data.get("displayName"), max_len=100)
        if not display_name:
            return svc.api_error("昵称不能为空")
        user.display_name = display_name
    if "bio" in data:
        user.bio = svc.clean_text(data.get("bio"), max_len=150) or None
    if "avatarUrl" in data:
        user.avatar_url = svc.clean_text(data.get("avatarUrl"), max_len=500) or None

    db.session.commit()
    return svc.api_ok("资料已更新", user=svc.serialize_user(user, private=True))


@auth_bp.put("/password")
@login_required
def change_password():
    """修改密码：校验旧密码，新密码至少 6 位。"""
    data = request.get_json(silent=True) or {}
    current_password = data.get("currentPassword")
    new_password = data.get("newPassword")
    if not isinstance(current_password, str) or not isinstance(new_password, str):
        return svc.api_error("请输入当前密码和新密码")
    if not current_password or not new_password:
        return svc.api_error("请输入当前密码和新密码")
    if len(new_password) < svc.MIN_PASSWORD_LENGTH:
        return svc.api_error("新密码至少 6 位")

    user = db.session.get(User, current_user.id)
    if not svc.verify_password(user.password, current_password):
        return svc.api_error("当前密码错误")

    user.password = svc.hash_password(new_password)
    db.session.commit()
    return svc.api_ok("密码已修改")


# ============================================================
# 2) API：用户（User）
# ============================================================


def _viewer_id() -> int | None:
    return current_user.id if current_user.is_authenticated else None


@api_bp.get("/users/<int:user_id>")
def get_user(user_id: int):
    """公开主页信息；登录用户附带是否已关注。"""
    user = db.session.get(User, user_id)
    if user is None:
        return svc.api_error("用户不存在", code=404, http_status=404)
    viewer_id = _viewer_id()
    following = svc.is_following(viewer_id, user_id) if viewer_id else None
    return svc.api_ok(user=svc.serialize_user(user, is_following=following))


@api_bp.get("/users/<int:user_id>/videos")
def get_user_videos(user_id: int):
    """某个用户发布的视频（新的在前，不含已下架）。"""
    if db.session.get(User, user_id) is None:
        return svc.api_error("用户不存在", code=404, http_status=404)
    videos = (
        svc.visible_videos()
        .filter(Video.author_id == user_id)
        .order_by(Video.created_at.desc(), Video.id.desc())
        .all()
    )
    return svc.api_ok(videos=svc.serialize_videos(videos, viewer_id=_viewer_id()))


@api_bp.post("/users/<int:user_id>/follow")
@login_required
def follow_user(user_id: int):
    """关注 / 取消关注（切换）。"""
    if user_id == current_user.id:
        return svc.api_error("不能关注自己")
    if db.session.get(User, user_id) is None:
        return svc.api_error("用户不存在", code=404, http_status=404)
    following = svc.toggle_follow(current_user.id, user_id)
    return svc.api_ok("已关注" if following else "已取消关注", following=following)


@api_bp.get("/users/<int:user_id>/followers")
def get_followers(user_id: int):
    """粉丝列表（最近关注的在前）。"""
    return svc.api_ok(users=[svc.serialize_user_brief(u) for u in svc.list_followers(user_id)])


@api_bp.get("/users/<int:user_id>/following")
def get_following(user_id: int):
    """关注列表（最近关注的在前）。"""
    return svc.api_ok(users=[svc.serialize_user_brief(u) for u in svc.list_following(user_id)])


# ============================================================
# 3) API：视频（Videos）
# ============================================================


def _page_args() -> tuple[int, int]:
    limit = request.args.get("limit", svc.DEFAULT_PAGE_SIZE, type=int)
    offset = request.args.get("offset", 0, type=int)
    return svc.clamp_int(limit, lo=1, hi=svc.MAX_PAGE_SIZE), max(0, offset)


@api_bp.get("/videos")
def list_videos():
    """视频列表：按分类/关键词筛选，sort=recent（默认）或 popular。"""
    category = svc.clean_text(request.args.get("category"), max_len=50)
    search = svc.clean_text(request.args.get("search"), max_len=100)
    sort = request.args.get("sort", "recent")
    limit, offset = _page_args()

    query = svc.visible_videos()
    if category and category != "all":
        query = query.filter(Video.category == category)
    if search:
        pattern = f"%{search}%"
        query = query.filter(db.or_(Video.title.ilike(pattern), Video.description.ilike(pattern)))
    if sort == "popular":
        query = query.order_by(Video.likes_count.desc(), Video.created_at.desc(), Video.id.desc())
    else:
        query = query.order_by(Video.created_at.desc(), Video.id.desc())

    videos = query.offset(offset).limit(limit).all()
    return svc.api_ok(videos=svc.serialize_videos(videos, viewer_id=_viewer_id()))


@api_bp.get("/videos/feed")
def video_feed():
    """首页推荐流：recommended（总点赞）/ new（最新）/ popular（近 30 天点赞）。"""
    size = svc.FEED_SECTION_SIZE
    base = svc.visible_videos()
    since = datetime.now() - timedelta(days=svc.FEED_POPULAR_DAYS)
    recommended = base.order_by(Video.likes_count.desc(), Video.created_at.desc(), Video.id.desc()).limit(size).all()
    recent = base.order_by(Video.created_at.desc(), Video.id.desc()).limit(size).all()
    popular = (
        base.filter(Video.created_at > since)
        .order_by(Video.likes_count.desc(), Video.id.desc())
        .limit(size)
        .all()
    )
    viewer_id = _viewer_id()
    return svc.api_ok(
        recommended=svc.serialize_videos(recommended, viewer_id=viewer_id),
        new=svc.serialize_videos(recent, viewer_id=viewer_id),
        popular=svc.serialize_videos(popular, viewer_id=viewer_id),
    )


@api_bp.post("/videos")
@login_required
def create_video():
    """上传视频元数据（时长不超过 60 秒），成功后发放上传经验。"""
    data = request.get_json(silent=True) or {}
    title = svc.clean_text(data.get("title"))
    category = svc.clean_text(data.get("category"), max_len=50)
    duration = svc.parse_positive_int(data.get("duration"))
    if not title or not category or duration is None:
        return svc.api_error("标题、分类和时长为必填项")
    if len(title) > svc.MAX_VIDEO_TITLE:
        return svc.api_error("标题过长")
    if duration > svc.MAX_VIDEO_DURATION:
        return svc.api_error("视频时长不能超过 60 秒")
    description = svc.clean_text(data.get("description"))
    if len(description) > svc.MAX_VIDEO_DESCRIPTION:
        return svc.api_error("简介不能超过 300 字")

    user_id = current_user.id
    video = Video(
        author_id=user_id,
        title=title,
        description=description or None,
        category=category,
        video_url=svc.clean_text(data.get("videoUrl")) or None,
        thumbnail_url=svc.clean_text(data.get("thumbnailUrl")) or None,
        duration=duration,
        comments_enabled=data.get("commentsEnabled") is not False,
    )
    db.session.add(video)
    db.session.commit()

    result = svc.get_reward_engine().grant_for_action(user_id, "video_upload")
    if not result.success:
        current_app.logger.info("Video %s uploaded without xp: %s", video.id, result.error)

    author = db.session.get(User, user_id)
    return svc.api_ok(
        "上传成功",
        code=201,
        http_status=201,
        video=svc.serialize_video(video, author=author),
        **svc.reward_fields(result),
    )


@api_bp.get("/videos/<int:video_id>")
def get_video(video_id: int):
    """视频详情；登录用户附带点赞/收藏状态。"""
    video = db.session.get(Video, video_id)
    if video is None:
        return svc.api_error("视频不存在", code=404, http_status=404)
    flags = svc.user_action_flags(_viewer_id(), video_id)
    author = db.session.get(User, video.author_id) if video.author_id else None
    return svc.api_ok(video=svc.serialize_video(video, author=author, **flags))


@api_bp.post("/videos/<int:video_id>/watch")
@login_required
def watch_video(video_id: int):
    """记录观看：同一用户同一视频在冷却窗口内只发一次经验，但观看本身总是成功。"""
    if db.session.get(Video, video_id) is None:
        return svc.api_error("视频不存在", code=404, http_status=404)

    result = svc.get_reward_engine().grant_throttled(current_user.id, "video_watch", "video", video_id)
    if not result.success:
        current_app.logger.info("Watch xp failed for video %s: %s", video_id, result.error)
    return svc.api_ok("OK", **svc.reward_fields(result))


def _toggle_action(video_id: int, action_type: str):
    if db.session.get(Video, video_id) is None:
        return svc.api_error("视频不存在", code=404, http_status=404)
    user_id = current_user.id
    if request.method == "DELETE":
        if svc.delete_action(user_id, video_id, action_type):
            return svc.api_ok("删除成功")
        return svc.api_error("记录不存在", code=404, http_status=404)
    if svc.create_action(user_id, video_id, action_type):
        return svc.api_ok("操作成功", code=201, http_status=201)
    return svc.api_ok("已存在")


@api_bp.route("/videos/<int:video_id>/like", methods=["POST", "DELETE"])
@login_required
def like_video(video_id: int):
    """点赞 / 取消点赞。"""
    return _toggle_action(video_id, "like")


@api_bp.route("/videos/<int:video_id>/save", methods=["POST", "DELETE"])
@login_required
def save_video(video_id: int):
    """收藏 / 取消收藏。"""
    return _toggle_action(video_id, "save")


@api_bp.delete("/videos/<int:video_id>")
@login_required
def delete_video(video_id: int):
    """删除自己的视频；不存在或不是作者一律 404。"""
    if not svc.delete_video(video_id, current_user.id):
        return svc.api_error("视频不存在或无权删除", code=404, http_status=404)
    return svc.api_ok("删除成功")


@api_bp.get("/videos/<int:video_id>/comments")
def list_video_comments(video_id: int):
    """视频评论（新的在前）。"""
    if db.session.get(Video, video_id) is None:
        return svc.api_error("视频不存在", code=404, http_status=404)
    comments = (
        VideoComment.query.filter_by(video_id=video_id)
        .order_by(VideoComment.created_at.desc(), VideoComment.id.desc())
        .all()
    )
    users = svc.users_by_id(c.user_id for c in comments)
    return svc.api_ok(comments=[svc.serialize_video_comment(c, author=users.get(c.user_id)) for c in comments])


@api_bp.post("/videos/<int:video_id>/comments")
@login_required
def add_video_comment(video_id: int):
    """评论视频；作者关闭评论时 403，评论别人的视频会通知作者。"""
    data = request.get_json(silent=True) or {}
    content = svc.clean_text(data.get("content"))
    if not content:
        return svc.api_error("评论内容不能为空")

    video = db.session.get(Video, video_id)
    if video is None:
        return svc.api_error("视频不存在", code=404, http_status=404)
    if video.comments_enabled is False:
        return svc.api_error("该视频已关闭评论", code=403, http_status=403)

    user_id = current_user.id
    author = db.session.get(User, user_id)
    comment = VideoComment(video_id=video_id, user_id=user_id, content=content)
    db.session.add(comment)
    svc.notify(
        video.author_id,
        "comment",
        "新的评论",
        f"{author.display_name} 评论了你的视频《{video.title}》",
        related_user_id=user_id,
        related_video_id=video_id,
    )
    db.session.commit()
    return svc.api_ok(
        "评论成功", code=201, http_status=201, comment=svc.serialize_video_comment(comment, author=author)
    )


@api_bp.post("/videos/<int:video_id>/report")
@login_required
def report_video(video_id: int):
    """举报视频（等价于 content_type=video 的 /api/reports）。"""
    data = request.get_json(silent=True) or {}
    reason = svc.clean_text(data.get("reason"), max_len=svc.MAX_REPORT_REASON)
    if not reason:
        return svc.api_error("请填写举报原因")

    video = db.session.get(Video, video_id)
    if video is None:
        return svc.api_error("视频不存在", code=404, http_status=404)
    if video.author_id == current_user.id:
        return svc.api_error("不能举报自己的内容")

    report = svc.create_report(
        current_user.id,
        content_type="video",
        reason=reason,
        message=svc.clean_text(data.get("description")),
        content_id=video_id,
        target_user_id=video.author_id,
    )
    if report is None:
        return svc.api_error("你已经举报过该视频", code=409, http_status=409)
    return svc.api_ok("举报已提交", code=201, http_status=201, reportId=report.id)


# ============================================================
# 4) API：社区（Community）
# ============================================================


@api_bp.get("/community/posts")
def list_posts():
    """求助帖列表：按分类/状态筛选，新的在前。"""
    category = svc.clean_text(request.args.get("category"), max_len=50)
    status = svc.clean_text(request.args.get("status"), max_len=20)
    limit, offset = _page_args()

    query = CommunityPost.query
    if category and category != "all":
        query = query.filter(CommunityPost.category == category)
    if status and status != "all":
        query = query.filter(CommunityPost.status == status)
    posts = query.order_by(CommunityPost.created_at.desc(), CommunityPost.id.desc()).offset(offset).limit(limit).all()

    authors = svc.users_by_id(p.author_id for p in posts)
    return svc.api_ok(posts=[svc.serialize_post(p, author=authors.get(p.author_id)) for p in posts])


@api_bp.post("/community/posts")
@login_required
def create_post():
    """发布求助帖，发放发帖经验。"""
    data = request.get_json(silent=True) or {}
    title = svc.clean_text(data.get("title"))
    description = svc.clean_text(data.get("description"))
    category = svc.clean_text(data.get("category"), max_len=50)
    if not title or not description or not category:
        return svc.api_error("标题、描述和分类为必填项")
    if len(title) > svc.MAX_POST_TITLE:
        return svc.api_error("标题过长")

    user_id = current_user.id
    post = CommunityPost(
        author_id=user_id,
        title=title,
        description=description,
        category=category,
        image_url=svc.clean_text(data.get("imageUrl")) or None,
    )
    db.session.add(post)
    db.session.commit()

    result = svc.get_reward_engine().grant_for_action(user_id, "community_post")
    author = db.session.get(User, user_id)
    return svc.api_ok(
        "发布成功",
        code=201,
        http_status=201,
        post=svc.serialize_post(post, author=author),
        **svc.reward_fields(result),
    )


@api_bp.get("/community/posts/<int:post_id>")
def get_post(post_id: int):
    """帖子详情 + 评论列表（按时间正序）。"""
    post = db.session.get(CommunityPost, post_id)
    if post is None:
        return svc.api_error("帖子不存在", code=404, http_status=404)

    comments = (
        CommunityComment.query.filter_by(post_id=post_id)
        .order_by(CommunityComment.created_at.asc(), CommunityComment.id.asc())
        .all()
    )
    user_ids = {c.user_id for c in comments if c.user_id}
    if post.author_id:
        user_ids.add(post.author_id)
    users = {u.id: u for u in User.query.filter(User.id.in_(user_ids)).all()} if user_ids else {}

    return svc.api_ok(
        post=svc.serialize_post(post, author=users.get(post.author_id)),
        comments=[svc.serialize_comment(c, author=users.get(c.user_id)) for c in comments],
    )


@api_bp.put("/community/posts/<int:post_id>/status")
@login_required
def update_post_status(post_id: int):
    """帖主修改帖子状态：open / answered / solved。"""
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if status not in svc.POST_STATUSES:
        return svc.api_error("状态无效")

    post = db.session.get(CommunityPost, post_id)
    if post is None:
        return svc.api_error("帖子不存在", code=404, http_status=404)
    if post.author_id != current_user.id:
        return svc.api_error("只有帖主可以修改状态", code=403, http_status=403)

    post.status = status
    db.session.commit()
    return svc.api_ok("状态已更新", status=status)


@api_bp.get("/community/posts/<int:post_id>/comments")
def list_post_comments(post_id: int):
    """帖子评论：解答排最前，其余按时间正序；附带关联视频的标题和封面。"""
    if db.session.get(CommunityPost, post_id) is None:
        return svc.api_error("帖子不存在", code=404, http_status=404)

    comments = (
        CommunityComment.query.filter_by(post_id=post_id)
        .order_by(CommunityComment.is_solution.desc(), CommunityComment.created_at.asc(), CommunityComment.id.asc())
        .all()
    )
    users = svc.users_by_id(c.user_id for c in comments)
    videos = svc.videos_by_id(c.linked_video_id for c in comments)
    return svc.api_ok(
        comments=[
            svc.serialize_comment(c, author=users.get(c.user_id), linked_video=videos.get(c.linked_video_id))
            for c in comments
        ]
    )


@api_bp.post("/community/posts/<int:post_id>/comments")
@login_required
def add_comment(post_id: int):
    """评论帖子；同一用户在同一帖子下只拿一次评论经验。"""
    if db.session.get(CommunityPost, post_id) is None:
        return svc.api_error("帖子不存在", code=404, http_status=404)

    data = request.get_json(silent=True) or {}
    content = svc.clean_text(data.get("content"))
    if not content:
        return svc.api_error("评论内容不能为空")
    linked_video_id = svc.parse_positive_int(data.get("linkedVideoId"))
    if linked_video_id and db.session.get(Video, linked_video_id) is None:
        linked_video_id = None

    user_id = current_user.id
    comment = CommunityComment(post_id=post_id, user_id=user_id, content=content, linked_video_id=linked_video_id)
    db.session.add(comment)
    CommunityPost.query.filter_by(id=post_id).update(
        {CommunityPost.comments_count: CommunityPost.comments_count + 1}, synchronize_session=False
    )
    db.session.commit()

    result = svc.get_reward_engine().grant_once_per_scope(user_id, "community_comment", "post_comment", post_id)
    author = db.session.get(User, user_id)
    return svc.api_ok(
        "评论成功",
        code=201,
        http_status=201,
        comment=svc.serialize_comment(comment, author=author),
        **svc.reward_fields(result),
    )


@api_bp.put("/community/posts/<int:post_id>/comments/<int:comment_id>/solution")
@login_required
def mark_solution(post_id: int, comment_id: int):
    """帖主标记解答：帖子置为 solved；解答者（非帖主本人）每帖只拿一次解答经验。"""
    post = db.session.get(CommunityPost, post_id)
    if post is None:
        return svc.api_error("帖子不存在", code=404, http_status=404)
    if post.author_id != current_user.id:
        return svc.api_error("只有帖主可以标记解答", code=403, http_status=403)

    comment = CommunityComment.query.filter_by(id=comment_id, post_id=post_id).first()
    if comment is None:
        return svc.api_error("评论不存在", code=404, http_status=404)

    helper_id = comment.user_id
    author_id = post.author_id
    CommunityComment.query.filter_by(post_id=post_id).update(
        {CommunityComment.is_solution: False}, synchronize_session=False
    )
    CommunityComment.query.filter_by(id=comment_id, post_id=post_id).update(
        {CommunityComment.is_solution: True}, synchronize_session=False
    )
    post.status = "solved"
    db.session.commit()

    helper_xp = 0
    if helper_id and helper_id != author_id:
        result = svc.get_reward_engine().grant_once_per_scope(helper_id, "post_solved", "post_solution", post_id)
        if result.success:
            helper_xp = result.xp_awarded
    return svc.api_ok("已标记为解答", helperXpAwarded=helper_xp)


# ============================================================
# 5) API：通知（Notifications）
# ============================================================


@api_bp.get("/notifications")
@login_required
def list_notifications():
    """最近 50 条通知（新的在前）。"""
    return svc.api_ok(notifications=svc.recent_notifications(current_user.id))


@api_bp.get("/notifications/unread-count")
@login_required
def unread_notification_count():
    count = Notification.query.filter_by(user_id=current_user.id, is_read=False).count()
    return svc.api_ok(count=count)


@api_bp.put("/notifications/<int:notification_id>/read")
@login_required
def mark_notification_read(notification_id: int):
    """标记单条已读；只能操作自己的通知。"""
    updated = Notification.query.filter_by(id=notification_id, user_id=current_user.id).update(
        {Notification.is_read: True}, synchronize_session=False
    )
    db.session.commit()
    if not updated:
        return svc.api_error("通知不存在", code=404, http_status=404)
    return svc.api_ok("已读")


@api_bp.put("/notifications/read-all")
@login_required
def mark_all_notifications_read():
    Notification.query.filter_by(user_id=current_user.id, is_read=False).update(
        {Notification.is_read: True}, synchronize_session=False
    )
    db.session.commit()
    return svc.api_ok("全部已读")


@api_bp.delete("/notifications/<int:notification_id>")
@login_required
def delete_notification(notification_id: int):
    deleted = Notification.query.filter_by(id=notification_id, user_id=current_user.id).delete(
        synchronize_session=False
    )
    db.session.commit()
    if not deleted:
        return svc.api_error("通知不存在", code=404, http_status=404)
    return svc.api_ok("已删除")


# ============================================================
# 6) API：举报（Reports）
# ============================================================


@api_bp.post("/reports")
@login_required
def create_report():
    """举报视频 / 主页 / 评论；同一对象未处理的举报只能有一条。"""
    data = request.get_json(silent=True) or {}
    content_type = data.get("contentType")
    reason = svc.clean_text(data.get("reason"), max_len=svc.MAX_REPORT_REASON)
    content_id = svc.parse_positive_int(data.get("contentId"))
    target_user_id = svc.parse_positive_int(data.get("targetUserId"))

    if content_type not in svc.REPORT_CONTENT_TYPES:
        return svc.api_error("举报类型无效（video / profile / comment）")
    if not reason:
        return svc.api_error("请填写举报原因")
    if content_type in ("video", "comment") and content_id is None:
        return svc.api_error("缺少被举报内容的 ID")
    if content_type == "profile" and target_user_id is None:
        return svc.api_error("缺少被举报用户的 ID")
    if target_user_id == current_user.id:
        return svc.api_error("不能举报自己")
    if target_user_id is not None and db.session.get(User, target_user_id) is None:
        return svc.api_error("用户不存在", code=404, http_status=404)

    report = svc.create_report(
        current_user.id,
        content_type=content_type,
        reason=reason,
        message=svc.clean_text(data.get("message")),
        content_id=content_id,
        target_user_id=target_user_id,
    )
    if report is None:
        return svc.api_error("你已经举报过该内容", code=409, http_status=409)
    return svc.api_ok("举报已提交", code=201, http_status=201, reportId=report.id)


# ============================================================
# 7) API：经验（XP）
# ============================================================


@api_bp.get("/xp/me")
@login_required
def my_xp():
    """当前用户的等级进度。"""
    return svc.api_ok(progress=level_progress(current_user.xp))


@api_bp.get("/xp/levels")
def xp_levels():
    """等级区间与行为奖励表（客户端展示用）。"""
    levels = [{"level": b.level, "minXp": b.min_xp, "maxXp": b.max_xp} for b in LEVEL_THRESHOLDS]
    return svc.api_ok(levels=levels, rewards=dict(XP_REWARDS))
