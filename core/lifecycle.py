"""
单次投球的生命周期状态机

IDLE --grab--> HELD --release--> THROWN(touched_lane) --settle--> RESOLVED(valid)

- touched_lane: 球越过球道边界后第一次接触球道即锁存为 True，直到下一次出手
- 球落地但从未接触球道: 立即判为无效投球 (不计分)
- 球进入边沟/落地、静止或在球道上停住后，经过固定的防抖延时才判定本球结束
"""
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Union
import logging

from .timers import DelayTimer

logger = logging.getLogger(__name__)

# 判定本球结束前的等待时间 (秒)，让球瓶有时间稳定
SETTLE_DELAY = 5.0

# 球道接触有效边界 (世界坐标 z，球道朝 -z 方向延伸)
LANE_CONTACT_Z = -0.86

# 接触球道后低于该速度 (米/秒) 视为停住
STALL_SPEED = 0.05


class BallContact(Enum):
    """球当前接触的区域"""
    LANE = "lane"
    GUTTER = "gutter"
    GROUND = "ground"
    PIN = "pin"
    IN_HAND = "in-hand"


class RollPhase(Enum):
    """投球阶段"""
    IDLE = "idle"          # 未出手
    HELD = "held"          # 球在手中
    THROWN = "thrown"      # 已出手，等待结果
    RESOLVED = "resolved"  # 本球已判定


@dataclass(frozen=True)
class RollLifecycleState:
    """
    生命周期状态快照

    Attributes:
        phase: 当前阶段
        touched_lane: 仅 THROWN 阶段有意义
        valid: 仅 RESOLVED 阶段有意义
    """
    phase: RollPhase = RollPhase.IDLE
    touched_lane: bool = False
    valid: Optional[bool] = None

    @property
    def is_resolved(self) -> bool:
        return self.phase == RollPhase.RESOLVED


IDLE_STATE = RollLifecycleState()
HELD_STATE = RollLifecycleState(phase=RollPhase.HELD)


def parse_contacts(contacts: Iterable[Union[BallContact, str]]) -> FrozenSet[BallContact]:
    """
    将接触标签转换为 BallContact 集合，忽略未知标签

    Args:
        contacts: BallContact 或其字符串值

    Returns:
        接触集合
    """
    parsed = set()
    for contact in contacts:
        if isinstance(contact, BallContact):
            parsed.add(contact)
            continue
        try:
            parsed.add(BallContact(contact))
        except ValueError:
            logger.debug(f"Ignoring unknown ball contact {contact!r}")
    return frozenset(parsed)


class RollLifecycle:
    """
    投球生命周期

    只有本类可以修改状态; 回合控制器只读取最终的 RESOLVED 结果
    """

    def __init__(
        self,
        settle_delay: float = SETTLE_DELAY,
        lane_contact_z: float = LANE_CONTACT_Z,
        stall_speed: float = STALL_SPEED,
    ):
        self.lane_contact_z = lane_contact_z
        self.stall_speed = stall_speed
        self._settle_timer = DelayTimer("settle", settle_delay)
        self._state = IDLE_STATE

    @property
    def state(self) -> RollLifecycleState:
        return self._state

    @property
    def phase(self) -> RollPhase:
        return self._state.phase

    @property
    def touched_lane(self) -> bool:
        return self._state.phase == RollPhase.THROWN and self._state.touched_lane

    @property
    def settling(self) -> bool:
        """是否正在等待防抖计时结束"""
        return self._settle_timer.pending

    @property
    def settle_timer(self) -> DelayTimer:
        return self._settle_timer

    def grab(self) -> RollLifecycleState:
        """拿起球: 任何阶段都回到 HELD，并取消待触发的计时器"""
        if self._settle_timer.cancel():
            logger.debug("Settle timer cancelled by grab")
        self._state = HELD_STATE
        return self._state

    def release(self) -> RollLifecycleState:
        """出手: 丢弃之前的所有状态，开始新的一球"""
        if self._state.phase != RollPhase.HELD:
            logger.debug(f"Release observed in phase {self._state.phase.value}")
        self._settle_timer.cancel()
        self._state = RollLifecycleState(phase=RollPhase.THROWN, touched_lane=False)
        return self._state

    def reset(self) -> RollLifecycleState:
        """回到 IDLE (球被放回原位)"""
        self._settle_timer.cancel()
        self._state = IDLE_STATE
        return self._state

    def observe(
        self,
        contacts: Iterable[Union[BallContact, str]],
        lane_z: float,
        is_sleeping: bool,
        now: float,
        linear_speed: Optional[float] = None,
    ) -> RollLifecycleState:
        """
        处理一次球的观测

        Args:
            contacts: 球当前接触的区域
            lane_z: 球沿球道方向的世界坐标 z
            is_sleeping: 物理引擎是否报告球已静止
            now: 当前模拟时间
            linear_speed: 球的线速度，None 表示未知

        Returns:
            更新后的状态
        """
        if self._state.phase != RollPhase.THROWN:
            logger.debug(f"Ball observation ignored in phase {self._state.phase.value}")
            return self._state

        contacts = parse_contacts(contacts)

        # 锁存球道接触 (只在球越过边界后计入)
        if (
            not self._state.touched_lane
            and BallContact.LANE in contacts
            and lane_z < self.lane_contact_z
        ):
            self._state = RollLifecycleState(phase=RollPhase.THROWN, touched_lane=True)
            logger.debug(f"Ball touched lane at z={lane_z:.3f}")

        if not self._settle_timer.pending:
            in_gutter = BallContact.GUTTER in contacts
            on_ground = BallContact.GROUND in contacts
            # 已上球道但停住且未被判定静止 (没有任何接触标签时也成立)
            stalled = (
                self._state.touched_lane
                and linear_speed is not None
                and linear_speed <= self.stall_speed
            )

            if in_gutter or on_ground or is_sleeping or stalled:
                if on_ground and not self._state.touched_lane:
                    return self._resolve(valid=False)
                if in_gutter or self._state.touched_lane:
                    self._settle_timer.start(now)
                    logger.debug(f"Settle timer started at t={now:.2f}")
                else:
                    # 球停在助走区，从未到达球道
                    return self._resolve(valid=False)

        return self.poll(now)

    def poll(self, now: float) -> RollLifecycleState:
        """检查防抖计时是否到期"""
        if self._state.phase == RollPhase.THROWN and self._settle_timer.poll(now):
            return self._resolve(valid=True)
        return self._state

    def _resolve(self, valid: bool) -> RollLifecycleState:
        self._settle_timer.cancel()
        self._state = RollLifecycleState(phase=RollPhase.RESOLVED, valid=valid)
        if not valid:
            logger.info("Throw discarded: ball never reached the lane")
        return self._state
