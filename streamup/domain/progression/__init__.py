"""Progression domain: experience, levels, perks, badges and challenges."""

from .engine import ProgressionEngine, level_for_xp, xp_floor
from .store import InMemoryProgressionStore, ProgressionStore, RedisProgressionStore

__all__ = [
    "InMemoryProgressionStore",
    "ProgressionEngine",
    "ProgressionStore",
    "RedisProgressionStore",
    "level_for_xp",
    "xp_floor",
]
