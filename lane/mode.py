"""
游戏模式开关

- FREEPLAY: 不计分，全倒后延时自动重摆，拿球时清走倒瓶
- SCORING: 完整计分流程，球接触球道后到本球判定前不能拿球
"""
from enum import Enum
from typing import Union
import logging

from core.lifecycle import BallContact
from core.pins import PinSet
from core.timers import DelayTimer

logger = logging.getLogger(__name__)


class GameMode(Enum):
    """游戏模式"""
    FREEPLAY = "freeplay"
    SCORING = "scoring"


class GameModeGate:
    """
    模式门控

    管理当前模式以及自由模式下的全倒重摆计时器

    Attributes:
        grab_speed_limit: 允许拿起移动中的球的最大速度
    """

    def __init__(
        self,
        mode: Union[GameMode, str] = GameMode.FREEPLAY,
        rerack_delay: float = 5.0,
        grab_speed_limit: float = 0.1,
    ):
        self._mode = GameMode(mode)
        self.grab_speed_limit = grab_speed_limit
        self._rerack_timer = DelayTimer("rerack", rerack_delay)
        # 本组球瓶是否已触发过全倒
        self._all_fallen_seen = False

    @property
    def mode(self) -> GameMode:
        return self._mode

    @property
    def is_scoring(self) -> bool:
        return self._mode == GameMode.SCORING

    @property
    def rerack_pending(self) -> bool:
        return self._rerack_timer.pending

    @property
    def rerack_timer(self) -> DelayTimer:
        return self._rerack_timer

    def set_mode(self, mode: Union[GameMode, str]) -> bool:
        """
        切换模式

        Returns:
            模式是否发生变化
        """
        mode = GameMode(mode)
        if mode == self._mode:
            return False
        self._mode = mode
        self._rerack_timer.cancel()
        logger.info(f"Game mode changed to {mode.value}")
        return True

    def can_grab(
        self,
        speed: float,
        contacts: frozenset,
        touched_lane: bool,
    ) -> bool:
        """
        是否允许拿起球

        Args:
            speed: 球的线速度
            contacts: 球的接触区域
            touched_lane: 当前一球是否已接触球道

        Returns:
            是否允许
        """
        if self.is_scoring and touched_lane:
            return False
        out_of_play = BallContact.GUTTER in contacts or BallContact.GROUND in contacts
        return speed <= self.grab_speed_limit or out_of_play

    def watch_pins(self, pins: PinSet, now: float) -> bool:
        """
        自由模式下监视全倒并驱动重摆计时器

        Args:
            pins: 当前球瓶
            now: 当前模拟时间

        Returns:
            本 tick 是否应当重摆
        """
        if self.is_scoring:
            return False

        if pins.all_present_fallen and not self._all_fallen_seen:
            self._all_fallen_seen = True
            self._rerack_timer.start(now)
            logger.debug("All pins down, rerack scheduled")

        return self._rerack_timer.poll(now)

    def on_rack(self):
        """球瓶被重摆后调用"""
        self._all_fallen_seen = False
        self._rerack_timer.cancel()

    def cancel_timers(self):
        """取消待触发的自动重摆 (不清除本组的全倒标记)"""
        self._rerack_timer.cancel()
