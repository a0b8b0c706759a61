"""Flask 入口：创建应用、注册蓝图、初始化登录态与经验奖励引擎。"""

import logging

from flask import Flask
from flask_login import LoginManager

import app_services as svc
from config import Config
from core.cooldown_cache import CooldownCache
from core.reward_engine import RewardEngine
from models import User, XpRewardMarker, db

login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id):
    """Flask-Login 回调：根据 user_id 取出用户对象。"""
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    """接口统一返回 401 JSON，不做页面跳转（客户端是 App）。"""
    return svc.api_error("请先登录", code=401, http_status=401)


def create_app(config_object=Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object)

    level = app.config.get("LOG_LEVEL", "INFO")
    app.logger.setLevel(level)
    logging.getLogger("core").setLevel(level)

    db.init_app(app)
    login_manager.init_app(app)

    # 冷却缓存跟着 app 实例走：单进程内有效，多实例部署时各自独立
    app.extensions[svc.REWARD_ENGINE_KEY] = RewardEngine(
        db,
        User,
        XpRewardMarker,
        cooldowns=CooldownCache(app.config["WATCH_COOLDOWN_MAX_ENTRIES"]),
        default_cooldown=app.config["WATCH_XP_COOLDOWN_SECONDS"],
    )

    from app_routes import api_bp, auth_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)

    # Ensure core tables exist when running via `flask run` (tolerate missing DB in dev)
    try:
        with app.app_context():
            db.create_all()
    except Exception as exc:
        app.logger.warning("Skipping db.create_all during startup: %s", exc)

    return app


if __name__ == '__main__':
    create_app().run(debug=True, port=5000)
