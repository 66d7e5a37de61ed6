"""
计分板数据: 单球记录与局

- 第 1-9 局最多 2 球，第 10 局最多 3 球
- 记分符号: X (全中), / (补中), 数字 (击倒数)
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

# 总局数
FRAME_COUNT = 10

# 最后一局索引
LAST_FRAME = FRAME_COUNT - 1

# 一组球瓶的总数
FULL_RACK = 10


class RollKind(Enum):
    """单球结果类型"""
    STRIKE = "strike"
    SPARE = "spare"
    COUNT = "count"


@dataclass(frozen=True)
class RollRecord:
    """
    单球记录

    Attributes:
        kind: 结果类型
        pins: 本球击倒的球瓶数 (全中为 10，补中为剩余瓶数)
    """
    kind: RollKind
    pins: int

    @classmethod
    def strike(cls) -> 'RollRecord':
        return cls(RollKind.STRIKE, FULL_RACK)

    @classmethod
    def spare(cls, pins: int) -> 'RollRecord':
        return cls(RollKind.SPARE, pins)

    @classmethod
    def count(cls, pins: int) -> 'RollRecord':
        return cls(RollKind.COUNT, pins)

    @property
    def is_strike(self) -> bool:
        return self.kind == RollKind.STRIKE

    @property
    def is_spare(self) -> bool:
        return self.kind == RollKind.SPARE

    @property
    def value(self) -> int:
        """用于计分的击倒数"""
        return FULL_RACK if self.is_strike else self.pins

    @property
    def symbol(self) -> str:
        if self.is_strike:
            return "X"
        if self.is_spare:
            return "/"
        return str(self.pins)

    def __str__(self) -> str:
        return self.symbol


@dataclass(frozen=True)
class Frame:
    """
    一局

    Attributes:
        rolls: 已记录的球
        cumulative_score: 累计得分，None 表示尚未确定
    """
    rolls: Tuple[RollRecord, ...] = ()
    cumulative_score: Optional[int] = None

    def with_roll(self, roll: RollRecord) -> 'Frame':
        return Frame(rolls=self.rolls + (roll,), cumulative_score=self.cumulative_score)

    def with_score(self, cumulative_score: Optional[int]) -> 'Frame':
        return Frame(rolls=self.rolls, cumulative_score=cumulative_score)

    @property
    def is_strike(self) -> bool:
        return bool(self.rolls) and self.rolls[0].is_strike

    @property
    def is_spare(self) -> bool:
        return len(self.rolls) > 1 and self.rolls[1].is_spare

    @property
    def values(self) -> List[int]:
        return [roll.value for roll in self.rolls]

    def symbols(self, slots: int) -> List[str]:
        """
        计分板显示用符号，未投的球为空字符串

        Args:
            slots: 格子数 (第 10 局为 3)
        """
        cells = [roll.symbol for roll in self.rolls[:slots]]
        return cells + [""] * (slots - len(cells))

    def to_dict(self) -> Dict:
        return {
            "rolls": [roll.symbol for roll in self.rolls],
            "cumulative_score": self.cumulative_score,
        }


def slots_for(frame_index: int) -> int:
    """该局的球格数"""
    return 3 if frame_index == LAST_FRAME else 2
