"""核心业务模块

包含：
- xp_levels: 行为奖励表、等级区间与等级计算
- CooldownCache: 进程内冷却缓存（观看奖励限流）
- RewardEngine: 经验奖励引擎
"""

from .xp_levels import (
    XP_REWARDS,
    LEVEL_THRESHOLDS,
    MAX_LEVEL,
    level_from_experience,
    level_progress,
    min_experience_for_level,
    min_experience_for_next_level,
    normalize_experience,
)
from .cooldown_cache import CooldownCache
from .reward_engine import GrantResult, RewardEngine

__all__ = [
    "XP_REWARDS",
    "LEVEL_THRESHOLDS",
    "MAX_LEVEL",
    "level_from_experience",
    "level_progress",
    "min_experience_for_level",
    "min_experience_for_next_level",
    "normalize_experience",
    "CooldownCache",
    "GrantResult",
    "RewardEngine",
]
