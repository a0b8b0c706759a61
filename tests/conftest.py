import itertools

import pytest

from app import create_app
from config import Config
from core.cooldown_cache import CooldownCache
from core.reward_engine import RewardEngine
from models import User, XpRewardMarker, db

import app_services as svc


class _TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "test-secret"
    WATCH_XP_COOLDOWN_SECONDS = 300
    WATCH_COOLDOWN_MAX_ENTRIES = 100


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def app():
    app = create_app(_TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def web_app():
    """HTTP 测试用：不常驻 app context，每个请求各自推入，登录态不会串到别的客户端。"""
    app = create_app(_TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(web_app):
    return web_app.test_client()


@pytest.fixture
def engine(app):
    return app.extensions[svc.REWARD_ENGINE_KEY]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def clocked_engine(app, clock):
    """Same storage as the app engine, but the cooldown cache runs on a fake clock."""
    return RewardEngine(db, User, XpRewardMarker, cooldowns=CooldownCache(100, clock=clock), default_cooldown=300)


_emails = itertools.count(1)


@pytest.fixture
def make_user(app):
    def _make(xp: int = 0, level: int = 1, password: str = "secret123") -> int:
        user = User(
            email=f"user{next(_emails)}@example.com",
            display_name="tester",
            password=svc.hash_password(password),
            xp=xp,
            level=level,
        )
        db.session.add(user)
        db.session.commit()
        return user.id

    return _make


@pytest.fixture
def read_xp(app):
    def _read(user_id):
        """Fresh (xp, level) straight from the database."""
        return tuple(db.session.query(User.xp, User.level).filter(User.id == user_id).one())

    return _read


@pytest.fixture
def file_app(tmp_path):
    """落盘的 SQLite：多线程各自拿连接，写操作靠数据库锁排队。"""

    class _FileConfig(_TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'xp.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30}}

    app = create_app(_FileConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
