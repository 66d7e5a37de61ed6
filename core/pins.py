"""
球瓶定义与倒瓶判定

标准十瓶三角阵:
- 从犯规线方向起依次 1, 2, 3, 4 排
- 编号 0-9 按排展开 (0 为头瓶)

倒瓶判定是单向锁存: 一旦判定为倒下，在本局球瓶重摆前不会恢复站立
"""
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple
import logging
import math

import numpy as np

logger = logging.getLogger(__name__)

# 标准球瓶数量
PIN_COUNT = 10

# 倾斜阈值 (偏离竖直方向的角度)
TILT_THRESHOLD_DEG = 5.0

# 默认摆瓶几何 (米)
PIN_SPACING = 0.2
HEAD_PIN_Z = -7.0

# 每排球瓶数: 1, 2, 3, 4
RACK_ROWS: Tuple[int, ...] = (1, 2, 3, 4)


class PinState(Enum):
    """球瓶状态 (只允许 STANDING -> FALLEN)"""
    STANDING = "standing"
    FALLEN = "fallen"


def is_tipped(up_vector: Sequence[float], tilt_threshold_deg: float = TILT_THRESHOLD_DEG) -> bool:
    """
    检查球瓶是否倾斜超过阈值

    Args:
        up_vector: 球瓶自身的向上轴 (世界坐标)
        tilt_threshold_deg: 允许的最大倾角

    Returns:
        是否倾倒
    """
    up = np.asarray(up_vector, dtype=np.float64)
    norm = np.linalg.norm(up)
    if norm == 0.0:
        # 零向量无法判断方向，不作为倾倒依据
        return False
    return bool(up[1] / norm < math.cos(math.radians(tilt_threshold_deg)))


def rack_positions(
    count: int = PIN_COUNT,
    spacing: float = PIN_SPACING,
    head_z: float = HEAD_PIN_Z,
) -> np.ndarray:
    """
    计算三角阵中各球瓶的摆放位置

    Args:
        count: 球瓶数量 (最多 10)
        spacing: 瓶距
        head_z: 头瓶所在 z 坐标

    Returns:
        (count, 3) 数组，y 分量为 0 (由场景层加上球道高度)
    """
    positions = []
    for row, pins_in_row in enumerate(RACK_ROWS):
        for i in range(pins_in_row):
            x = (i - row / 2) * spacing * 2
            z = head_z - row * spacing * math.sqrt(3)
            positions.append((x, 0.0, z))
    return np.array(positions[:count], dtype=np.float32)


class Pin:
    """
    单个球瓶

    倒瓶状态只能通过 knock_down() 单向设置，没有对应的复位方法，
    复位必须重新摆瓶 (PinSet.rack)
    """

    __slots__ = ("pin_id", "_state", "retired")

    def __init__(self, pin_id: int):
        self.pin_id = pin_id
        self._state = PinState.STANDING
        # 被清理出场地 (仍计为本局倒瓶)
        self.retired = False

    @property
    def state(self) -> PinState:
        return self._state

    @property
    def is_fallen(self) -> bool:
        return self._state is PinState.FALLEN

    def knock_down(self) -> bool:
        """锁存倒瓶状态，返回是否为本次新倒下"""
        if self._state is PinState.FALLEN:
            return False
        self._state = PinState.FALLEN
        return True

    def __repr__(self) -> str:
        return f"Pin({self.pin_id}, {self._state.value}{', retired' if self.retired else ''})"


class PinSet:
    """
    当前一组球瓶的倒瓶状态

    Attributes:
        tilt_threshold_deg: 倾斜阈值
        spacing: 瓶距
        head_z: 头瓶 z 坐标
    """

    def __init__(
        self,
        count: int = PIN_COUNT,
        tilt_threshold_deg: float = TILT_THRESHOLD_DEG,
        spacing: float = PIN_SPACING,
        head_z: float = HEAD_PIN_Z,
    ):
        self.tilt_threshold_deg = tilt_threshold_deg
        self.spacing = spacing
        self.head_z = head_z
        self._pins: Dict[int, Pin] = {}
        self._positions = np.zeros((0, 3), dtype=np.float32)
        self.rack(count)

    def rack(self, count: int = PIN_COUNT) -> List[Pin]:
        """
        重新摆瓶: 所有球瓶恢复站立

        Args:
            count: 球瓶数量

        Returns:
            新的球瓶列表
        """
        count = max(0, min(PIN_COUNT, count))
        self._pins = {pin_id: Pin(pin_id) for pin_id in range(count)}
        self._positions = rack_positions(count, self.spacing, self.head_z)
        logger.debug(f"Racked {count} pins")
        return list(self._pins.values())

    def update(
        self,
        pin_id: int,
        up_vector: Sequence[float],
        height_above_lane: float,
    ) -> bool:
        """
        根据一次观测更新球瓶状态

        Args:
            pin_id: 球瓶编号
            up_vector: 球瓶向上轴
            height_above_lane: 球瓶参考点相对球道表面的高度

        Returns:
            更新后该球瓶是否倒下 (未知编号返回 False)
        """
        pin = self._pins.get(pin_id)
        if pin is None:
            logger.debug(f"Ignoring observation for unknown pin {pin_id!r}")
            return False
        if pin.is_fallen:
            return True

        if height_above_lane < 0.0 or is_tipped(up_vector, self.tilt_threshold_deg):
            pin.knock_down()
            logger.debug(f"Pin {pin_id} fallen")
        return pin.is_fallen

    def clear_fallen(self) -> FrozenSet[int]:
        """
        清理场上已倒的球瓶 (站立的球瓶保持原样)

        Returns:
            本次清理的球瓶编号
        """
        cleared = []
        for pin in self._pins.values():
            if pin.is_fallen and not pin.retired:
                pin.retired = True
                cleared.append(pin.pin_id)
        return frozenset(cleared)

    def fallen_ids(self) -> FrozenSet[int]:
        """本局所有已倒球瓶 (包括已清理的)"""
        return frozenset(p.pin_id for p in self._pins.values() if p.is_fallen)

    def standing_ids(self) -> FrozenSet[int]:
        return frozenset(p.pin_id for p in self._pins.values() if not p.is_fallen)

    def present_ids(self) -> FrozenSet[int]:
        """仍在场上的球瓶"""
        return frozenset(p.pin_id for p in self._pins.values() if not p.retired)

    @property
    def all_present_fallen(self) -> bool:
        """场上还有球瓶且全部倒下"""
        present = [p for p in self._pins.values() if not p.retired]
        return bool(present) and all(p.is_fallen for p in present)

    def get(self, pin_id: int) -> Optional[Pin]:
        return self._pins.get(pin_id)

    def positions(self) -> np.ndarray:
        """摆瓶位置 (按编号排列)"""
        return self._positions.copy()

    def __len__(self) -> int:
        return len(self._pins)

    def __contains__(self, pin_id: int) -> bool:
        return pin_id in self._pins
