"""延时回调

surface 的延时发送需要一个"稍后执行"的机制，由调用方注入：

- ManualScheduler: 手动推进时间，用于测试和无界面运行
- AppScheduler: 交给 Textual 应用的定时器
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable

logger = logging.getLogger(__name__)


class Scheduled:
    """已安排的回调"""

    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler(ABC):
    """调度器接口"""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> Scheduled:
        """delay 秒后执行 callback"""
        pass


class ManualScheduler(Scheduler):
    """手动推进的调度器"""

    def __init__(self):
        self.now = 0.0
        self._pending: list[Scheduled] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> Scheduled:
        item = Scheduled(self.now + delay, callback)
        self._pending.append(item)
        return item

    @property
    def pending(self) -> int:
        """尚未执行的回调数"""
        return sum(1 for item in self._pending if not item.cancelled)

    def advance(self, seconds: float) -> int:
        """推进时间并执行到期回调，返回执行数量"""
        self.now += seconds
        ran = 0
        while True:
            due = [item for item in self._pending if item.due <= self.now]
            if not due:
                return ran
            due.sort(key=lambda item: item.due)
            item = due[0]
            self._pending.remove(item)
            if not item.cancelled:
                item.callback()
                ran += 1


class AppScheduler(Scheduler):
    """使用 Textual App.set_timer 的调度器"""

    def __init__(self, app):
        self.app = app

    def call_later(self, delay: float, callback: Callable[[], None]) -> Scheduled:
        item = Scheduled(time.monotonic() + delay, callback)

        def fire():
            if not item.cancelled:
                callback()

        self.app.set_timer(delay, fire)
        return item
