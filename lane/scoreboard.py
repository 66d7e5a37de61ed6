"""
计分板与球瓶 HUD 快照

供渲染层读取的只读数据，附带文本渲染 (调试用)
"""
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from core.frames import slots_for
from core.pins import RACK_ROWS, PinSet
from core.scoring import GameSession


@dataclass(frozen=True)
class FrameCell:
    """
    计分板上的一格

    Attributes:
        rolls: 各球符号 (X, /, 数字, 未投为空字符串)
        total: 累计得分 (None 为未确定)
    """
    rolls: Tuple[str, ...]
    total: Optional[int] = None


@dataclass(frozen=True)
class ScoreboardSnapshot:
    """
    计分板快照

    Attributes:
        frames: 10 局
        total_score: 当前已确定的总分
        current_frame_index: 当前局
        current_roll_index: 当前球
        is_game_over: 是否结束
    """
    frames: Tuple[FrameCell, ...]
    total_score: int = 0
    current_frame_index: int = 0
    current_roll_index: int = 0
    is_game_over: bool = False

    @classmethod
    def from_session(cls, session: GameSession) -> 'ScoreboardSnapshot':
        cells = tuple(
            FrameCell(
                rolls=tuple(frame.symbols(slots_for(i))),
                total=frame.cumulative_score,
            )
            for i, frame in enumerate(session.frames)
        )
        return cls(
            frames=cells,
            total_score=session.total_score,
            current_frame_index=session.current_frame_index,
            current_roll_index=session.current_roll_index,
            is_game_over=session.is_game_over,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frames": [
                {"rolls": list(cell.rolls), "total": cell.total}
                for cell in self.frames
            ],
            "total_score": self.total_score,
            "current_frame_index": self.current_frame_index,
            "current_roll_index": self.current_roll_index,
            "is_game_over": self.is_game_over,
        }

    def render_text(self) -> str:
        """
        文本计分板

        Returns:
            三行: 局号 / 各球符号 / 累计得分
        """
        header, rolls, totals = [], [], []
        for i, cell in enumerate(self.frames):
            width = 2 * len(cell.rolls) + 1
            header.append(f"{i + 1:^{width}}")
            rolls.append(" " + " ".join(s or " " for s in cell.rolls) + " ")
            totals.append(f"{'' if cell.total is None else cell.total:^{width}}")

        header.append(f"{'TOTAL':^7}")
        rolls.append(" " * 7)
        totals.append(f"{self.total_score:^7}")

        return "\n".join(
            "|" + "|".join(row) + "|" for row in (header, rolls, totals)
        )


@dataclass(frozen=True)
class PinHud:
    """
    球瓶状态 HUD

    Attributes:
        standing: 各编号是否站立 (已清理或已倒均为 False)，长度为本组摆放的球瓶数
    """
    standing: Tuple[bool, ...]

    @classmethod
    def from_pins(cls, pins: PinSet) -> 'PinHud':
        standing_ids = pins.standing_ids()
        return cls(standing=tuple(i in standing_ids for i in range(len(pins))))

    @property
    def fallen_ids(self) -> FrozenSet[int]:
        return frozenset(i for i, up in enumerate(self.standing) if not up)

    def rows(self) -> List[List[bool]]:
        """按排分组，头瓶所在排在前"""
        result = []
        start = 0
        for count in RACK_ROWS:
            row = list(self.standing[start:start + count])
            if not row:
                break
            result.append(row)
            start += count
        return result

    def render_text(self) -> str:
        """
        文本 HUD: 后排在上，头瓶在最下方

        O 为站立，. 为倒下
        """
        rows = self.rows()
        width = 2 * max(len(row) for row in rows) - 1
        lines = []
        for row in reversed(rows):
            line = " ".join("O" if up else "." for up in row)
            lines.append(f"{line:^{width}}".rstrip())
        return "\n".join(lines)
