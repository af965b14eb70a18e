"""DedupCache -- 时间窗口告警去重

键为 (user_id, subject, alert_type)，值为最近一次发出时间。
同一键在抑制窗口（1 小时）内再次触发时丢弃；
超过淘汰期（6 小时）的条目在 record() 时惰性清理；MonitorPass 每次评估开始时也调用 sweep()。

每个用户 worker 独占一个实例（单写者），因此不加锁。
"""

from datetime import datetime, timedelta

DedupeKey = tuple[str, str, str]

SUPPRESSION_WINDOW = timedelta(hours=1)
EVICTION_AGE = timedelta(hours=6)


class DedupCache:
    """告警去重缓存"""

    def __init__(
        self,
        window: timedelta = SUPPRESSION_WINDOW,
        max_age: timedelta = EVICTION_AGE,
    ) -> None:
        self._window = window
        self._max_age = max_age
        self._entries: dict[DedupeKey, datetime] = {}

    def should_emit(self, key: DedupeKey, now: datetime) -> bool:
        """判断该键的告警是否应发出（只读）"""
        last = self._entries.get(key)
        return last is None or now - last >= self._window

    def record(self, key: DedupeKey, now: datetime) -> None:
        """记录一次已落盘的告警，并顺带淘汰过期条目"""
        self._entries[key] = now
        self.sweep(now)

    def sweep(self, now: datetime) -> int:
        """淘汰超过 max_age 的条目，返回淘汰数量"""
        expired = [k for k, ts in self._entries.items() if now - ts > self._max_age]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def last_emitted(self, key: DedupeKey) -> datetime | None:
        return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
