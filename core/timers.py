"""
可取消的延时计时器

计时基于模拟时钟 (每个 tick 累加的 dt)，不依赖真实时间，
因此同一输入序列总是得到同样的结果
"""
from typing import Optional


class DelayTimer:
    """
    单次触发的延时计时器

    同一个计时器同时最多只有一个待触发的截止时间，
    重新 start() 会替换之前的截止时间

    Attributes:
        name: 计时器名称 (用于日志)
        delay: 默认延时 (秒)
    """

    def __init__(self, name: str, delay: float):
        if delay < 0:
            raise ValueError(f"Timer delay must be non-negative, got {delay}")
        self.name = name
        self.delay = delay
        self._deadline: Optional[float] = None

    def start(self, now: float, delay: Optional[float] = None) -> float:
        """
        启动 (或重启) 计时器

        Args:
            now: 当前模拟时间
            delay: 本次延时，默认使用 self.delay

        Returns:
            截止时间
        """
        self._deadline = now + (self.delay if delay is None else delay)
        return self._deadline

    def cancel(self) -> bool:
        """取消计时器，返回之前是否有待触发的截止时间"""
        was_pending = self._deadline is not None
        self._deadline = None
        return was_pending

    def poll(self, now: float) -> bool:
        """
        检查是否到期，到期时触发一次并清除

        Returns:
            本次是否触发
        """
        if self._deadline is None or now < self._deadline:
            return False
        self._deadline = None
        return True

    @property
    def pending(self) -> bool:
        return self._deadline is not None

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def remaining(self, now: float) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - now)

    def __repr__(self) -> str:
        return f"DelayTimer({self.name!r}, deadline={self._deadline})"
