"""数据模型定义：封装所有与数据库表对应的 SQLAlchemy ORM 类。"""

from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from sqlalchemy import func

db = SQLAlchemy()


class User(UserMixin, db.Model):
    """用户账户表：基本资料、密码哈希，以及经验值/等级（等级由经验值推导后缓存）。"""

    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, index=True, nullable=False)
    display_name = db.Column(db.String(100), nullable=False)
    password = db.Column(db.String(255))
    bio = db.Column(db.String(150))
    avatar_url = db.Column(db.String(500))

    # 只能通过 RewardEngine 修改；level == level_from_experience(xp)
    xp = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    level = db.Column(db.Integer, nullable=False, default=1, server_default="1")

    followers_count = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    following_count = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    created_at = db.Column(db.DateTime, default=func.now())
    updated_at = db.Column(db.DateTime, default=func.now(), onupdate=func.now())


class Video(db.Model):
    """用户上传的短视频（时长不超过 60 秒）。"""

    __tablename__ = 'videos'
    id = db.Column(db.Integer, primary_key=True)
    author_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), index=True)
    title = db.Column(db.String(60), nullable=False)
    description = db.Column(db.String(300))
    category = db.Column(db.String(50), nullable=False, index=True)
    video_url = db.Column(db.String(500))
    thumbnail_url = db.Column(db.String(500))
    duration = db.Column(db.Integer, nullable=False)  # 秒
    likes_count = db.Column(db.Integer, default=0)
    comments_enabled = db.Column(db.Boolean, default=True)
    is_flagged = db.Column(db.Boolean, default=False)  # 被审核下架后不再出现在列表里
    created_at = db.Column(db.DateTime, default=func.now(), index=True)


class UserAction(db.Model):
    """用户行为表：点赞/收藏都落在这里。"""

    __tablename__ = 'user_actions'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'))
    video_id = db.Column(db.Integer, db.ForeignKey('videos.id', ondelete='CASCADE'))
    action_type = db.Column(db.String(20))
    create_time = db.Column(db.DateTime, default=func.now())

    __table_args__ = (
        db.UniqueConstraint('user_id', 'video_id', 'action_type', name='uq_user_action'),
    )


class CommunityPost(db.Model):
    """社区问答帖：status 为 open / solved。"""

    __tablename__ = 'community_posts'
    id = db.Column(db.Integer, primary_key=True)
    author_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), index=True)
    title = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(50), nullable=False, index=True)
    image_url = db.Column(db.String(500))
    status = db.Column(db.String(20), default='open', index=True)
    comments_count = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=func.now())
    updated_at = db.Column(db.DateTime, default=func.now(), onupdate=func.now())


class CommunityComment(db.Model):
    """社区帖评论；可被帖主标记为解答。"""

    __tablename__ = 'community_comments'
    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('community_posts.id', ondelete='CASCADE'), index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'))
    content = db.Column(db.Text, nullable=False)
    linked_video_id = db.Column(db.Integer, db.ForeignKey('videos.id', ondelete='SET NULL'))
    is_solution = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=func.now())


class XpRewardMarker(db.Model):
    """幂等奖励标记：同一 (scope_kind, user_id, scope_id) 只允许发放一次经验。

    唯一约束是“是否已发放”的唯一依据，插入冲突即视为已发放。
    """

    __tablename__ = 'xp_reward_markers'
    id = db.Column(db.Integer, primary_key=True)
    scope_kind = db.Column(db.String(32), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    scope_id = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime, default=func.now())

    __table_args__ = (
        db.UniqueConstraint('scope_kind', 'user_id', 'scope_id', name='uq_xp_reward_marker'),
    )


class Follow(db.Model):
    """关注关系：follower 关注 following；同一对只能有一行。"""

    __tablename__ = 'follows'
    id = db.Column(db.Integer, primary_key=True)
    follower_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    following_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=func.now())

    __table_args__ = (
        db.UniqueConstraint('follower_id', 'following_id', name='uq_follow'),
    )


class VideoComment(db.Model):
    """视频下的评论（与社区帖评论分开存）。"""

    __tablename__ = 'video_comments'
    id = db.Column(db.Integer, primary_key=True)
    video_id = db.Column(db.Integer, db.ForeignKey('videos.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=func.now())


class Notification(db.Model):
    """站内通知：type 为 follow / like / comment。"""

    __tablename__ = 'notifications'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    type = db.Column(db.String(50), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text)
    related_user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))
    related_video_id = db.Column(db.Integer, db.ForeignKey('videos.id', ondelete='SET NULL'))
    is_read = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=func.now(), index=True)


class Report(db.Model):
    """举报记录：content_type 为 video / profile / comment；status 为 open / reviewing / resolved / dismissed。"""

    __tablename__ = 'reports'
    id = db.Column(db.Integer, primary_key=True)
    reporter_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    target_user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), index=True)
    content_id = db.Column(db.Integer, index=True)
    content_type = db.Column(db.String(20), nullable=False)
    reason = db.Column(db.String(100), nullable=False)
    message = db.Column(db.Text)
    status = db.Column(db.String(20), default='open', index=True)
    created_at = db.Column(db.DateTime, default=func.now())
    updated_at = db.Column(db.DateTime, default=func.now(), onupdate=func.now())
