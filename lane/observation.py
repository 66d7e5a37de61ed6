"""
每个 tick 的输入

由物理/场景层在每个固定步长提供:
- 各球瓶的朝向与高度
- 球的接触区域、速度、是否静止
- 离散的玩家动作事件
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Sequence, Tuple, Union
import numpy as np

from core.lifecycle import BallContact, parse_contacts

from .mode import GameMode

# 竖直向上
UP = (0.0, 1.0, 0.0)


@dataclass(frozen=True)
class PinObservation:
    """
    单个球瓶的观测

    Attributes:
        pin_id: 球瓶编号
        up_vector: 球瓶向上轴 (世界坐标)
        height_above_lane: 参考点相对球道表面的高度
    """
    pin_id: int
    up_vector: Tuple[float, float, float] = UP
    height_above_lane: float = 0.0

    @classmethod
    def upright(cls, pin_id: int, height: float = 0.19) -> 'PinObservation':
        return cls(pin_id=pin_id, up_vector=UP, height_above_lane=height)

    @classmethod
    def tilted(cls, pin_id: int, degrees: float, height: float = 0.19) -> 'PinObservation':
        """绕 x 轴倾斜指定角度的球瓶"""
        rad = np.radians(degrees)
        up = (0.0, float(np.cos(rad)), float(np.sin(rad)))
        return cls(pin_id=pin_id, up_vector=up, height_above_lane=height)


@dataclass(frozen=True)
class BallObservation:
    """
    球的观测

    Attributes:
        contacts: 接触区域
        linear_speed: 线速度大小
        is_sleeping: 物理引擎是否判定静止
        lane_z: 球的世界坐标 z
    """
    contacts: FrozenSet[BallContact] = frozenset()
    linear_speed: float = 0.0
    is_sleeping: bool = False
    lane_z: float = 0.0

    @classmethod
    def create(
        cls,
        contacts: Iterable[Union[BallContact, str]] = (),
        linear_speed: float = 0.0,
        is_sleeping: bool = False,
        lane_z: float = 0.0,
    ) -> 'BallObservation':
        return cls(
            contacts=parse_contacts(contacts),
            linear_speed=float(linear_speed),
            is_sleeping=is_sleeping,
            lane_z=float(lane_z),
        )

    @classmethod
    def from_velocity(
        cls,
        velocity: Sequence[float],
        contacts: Iterable[Union[BallContact, str]] = (),
        is_sleeping: bool = False,
        lane_z: float = 0.0,
    ) -> 'BallObservation':
        """由线速度向量构建"""
        speed = float(np.linalg.norm(np.asarray(velocity, dtype=np.float64)))
        return cls.create(contacts, speed, is_sleeping, lane_z)

    def touches(self, *contacts: BallContact) -> bool:
        return any(c in self.contacts for c in contacts)


class ActionKind(Enum):
    """玩家动作类型"""
    THROW_RELEASED = "throw_released"
    BALL_GRABBED = "ball_grabbed"
    MODE_CHANGED = "mode_changed"
    EXPLICIT_RESET_REQUESTED = "explicit_reset_requested"
    START_NEW_GAME_REQUESTED = "start_new_game_requested"


@dataclass(frozen=True)
class ActionEvent:
    """
    离散动作事件

    Attributes:
        kind: 动作类型
        mode: 仅 MODE_CHANGED 使用，目标模式
    """
    kind: ActionKind
    mode: Optional[GameMode] = None

    def __post_init__(self):
        if self.kind == ActionKind.MODE_CHANGED and self.mode is None:
            raise ValueError("mode_changed requires a target mode")

    @classmethod
    def throw_released(cls) -> 'ActionEvent':
        return cls(ActionKind.THROW_RELEASED)

    @classmethod
    def ball_grabbed(cls) -> 'ActionEvent':
        return cls(ActionKind.BALL_GRABBED)

    @classmethod
    def mode_changed(cls, mode: Union[GameMode, str]) -> 'ActionEvent':
        return cls(ActionKind.MODE_CHANGED, GameMode(mode))

    @classmethod
    def explicit_reset_requested(cls) -> 'ActionEvent':
        return cls(ActionKind.EXPLICIT_RESET_REQUESTED)

    @classmethod
    def start_new_game_requested(cls) -> 'ActionEvent':
        return cls(ActionKind.START_NEW_GAME_REQUESTED)


@dataclass(frozen=True)
class TickObservation:
    """
    一个 tick 的全部输入

    Attributes:
        dt: 本 tick 的时长 (秒)
        pins: 球瓶观测
        ball: 球观测
        actions: 本 tick 内发生的动作 (按发生顺序)
    """
    dt: float
    pins: Tuple[PinObservation, ...] = ()
    ball: BallObservation = field(default_factory=BallObservation)
    actions: Tuple[ActionEvent, ...] = ()

    @classmethod
    def create(
        cls,
        dt: float,
        pins: Iterable[PinObservation] = (),
        ball: Optional[BallObservation] = None,
        actions: Iterable[ActionEvent] = (),
    ) -> 'TickObservation':
        return cls(
            dt=max(0.0, float(dt)),
            pins=tuple(pins),
            ball=ball if ball is not None else BallObservation(),
            actions=tuple(actions),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dt": self.dt,
            "pins": [
                {"id": p.pin_id, "up": list(p.up_vector), "height": p.height_above_lane}
                for p in self.pins
            ],
            "ball": {
                "contacts": sorted(c.value for c in self.ball.contacts),
                "linear_speed": self.ball.linear_speed,
                "is_sleeping": self.ball.is_sleeping,
                "lane_z": self.ball.lane_z,
            },
            "actions": [a.kind.value for a in self.actions],
        }
