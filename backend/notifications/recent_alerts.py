from collections import deque
from typing import Deque, List

from common.models import TrafficAlert

DEFAULT_CAPACITY = 10


class RecentAlertBuffer:
    """Newest-first ring buffer of alerts across all trips."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._alerts: Deque[TrafficAlert] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._alerts.maxlen

    def record(self, alert: TrafficAlert):
        self._alerts.appendleft(alert)

    def snapshot(self) -> List[TrafficAlert]:
        return list(self._alerts)

    def clear(self):
        self._alerts.clear()

    def __len__(self) -> int:
        return len(self._alerts)
