"""进程内冷却缓存：key -> 上次发放时间。

只做“尽力而为”的限流：不落库、不跨进程共享，重启后全部清空。
容量有上限（LRU 淘汰）；过期条目在被访问到时删除，另外每 prune_every 次占位整体清理一遍。
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Hashable


class CooldownCache:
    """带 TTL 与容量上限的冷却表，线程安全。"""

    def __init__(
        self,
        max_items: int = 10000,
        *,
        clock: Callable[[], float] = time.monotonic,
        prune_every: int = 256,
    ):
        self._max_items = max(1, int(max_items))
        self._clock = clock
        self._prune_every = max(1, int(prune_every))
        self._acquires_since_prune = 0
        # key -> (last_time, expires_at)
        self._store: OrderedDict[Hashable, tuple[float, float]] = OrderedDict()
        self._lock = threading.RLock()

    def now(self) -> float:
        return self._clock()

    def _prune_expired_unlocked(self, now: float) -> None:
        expired_keys = [key for key, (_last, expires_at) in self._store.items() if expires_at <= now]
        for key in expired_keys:
            self._store.pop(key, None)
        self._acquires_since_prune = 0

    def _enforce_max_items_unlocked(self) -> None:
        while len(self._store) > self._max_items:
            self._store.popitem(last=False)

    def _live_entry_unlocked(self, key: Hashable, now: float):
        entry = self._store.get(key)
        if entry is not None and entry[1] <= now:
            self._store.pop(key, None)
            return None
        return entry

    def last_seen(self, key: Hashable) -> float | None:
        """返回仍在窗口内的上次时间；已过期或不存在返回 None。"""
        with self._lock:
            entry = self._live_entry_unlocked(key, self._clock())
            return None if entry is None else entry[0]

    def try_acquire(self, key: Hashable, window: float) -> bool:
        """检查并占位（原子操作）：窗口内已有记录返回 False；否则记下当前时间并返回 True。"""
        with self._lock:
            now = self._clock()
            self._acquires_since_prune += 1
            if self._acquires_since_prune >= self._prune_every:
                self._prune_expired_unlocked(now)
            entry = self._live_entry_unlocked(key, now)
            if entry is not None and now - entry[0] < window:
                return False
            self._store[key] = (now, now + float(window))
            self._store.move_to_end(key)
            self._enforce_max_items_unlocked()
            return True

    def release(self, key: Hashable) -> None:
        """撤销占位（发放失败时调用，让下一次请求可以重试）。"""
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._acquires_since_prune = 0

    def __len__(self) -> int:
        with self._lock:
            self._prune_expired_unlocked(self._clock())
            return len(self._store)
