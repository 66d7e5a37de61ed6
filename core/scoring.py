"""
计分引擎

GameSession 是不可变的比赛状态，每记录一球得到新的状态:
- 线程安全，可并行模拟多局
- 计分在每球后整体重算 (只有 10 局，开销可忽略)

FrameScoringEngine 的方法都是纯函数，无状态
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from .frames import FRAME_COUNT, FULL_RACK, LAST_FRAME, Frame, RollRecord
from .reset import ResetPolicy, decide_reset_policy

logger = logging.getLogger(__name__)


def _empty_frames() -> Tuple[Frame, ...]:
    return tuple(Frame() for _ in range(FRAME_COUNT))


@dataclass(frozen=True)
class GameSession:
    """
    一局保龄球比赛的状态

    Attributes:
        frames: 10 局记录
        current_frame_index: 当前局 (0-9)
        current_roll_index: 当前球在局内的序号 (第 1-9 局 0-1，第 10 局 0-2)
        pins_down_before_this_roll: 本组球瓶在当前球之前已倒下的数量
        is_game_over: 比赛是否结束 (结束后不再接受新球)
    """
    frames: Tuple[Frame, ...] = field(default_factory=_empty_frames)
    current_frame_index: int = 0
    current_roll_index: int = 0
    pins_down_before_this_roll: int = 0
    is_game_over: bool = False

    @classmethod
    def new(cls) -> 'GameSession':
        return cls()

    @property
    def current_frame(self) -> Frame:
        return self.frames[self.current_frame_index]

    @property
    def total_score(self) -> int:
        """最后一个已确定局的累计得分"""
        total = 0
        for frame in self.frames:
            if frame.cumulative_score is None:
                break
            total = frame.cumulative_score
        return total

    @property
    def roll_count(self) -> int:
        return sum(len(frame.rolls) for frame in self.frames)

    def to_dict(self) -> Dict:
        return {
            "frames": [frame.to_dict() for frame in self.frames],
            "current_frame_index": self.current_frame_index,
            "current_roll_index": self.current_roll_index,
            "pins_down_before_this_roll": self.pins_down_before_this_roll,
            "is_game_over": self.is_game_over,
            "total_score": self.total_score,
        }


class FrameScoringEngine:
    """
    十瓶保龄球计分规则

    提供记录单球、判定符号、重算累计得分等功能
    所有方法都是静态方法，无状态
    """

    @staticmethod
    def faces_fresh_rack(frame_index: int, frame: Frame, roll_index: int) -> bool:
        """该球是否面对整组重摆的球瓶"""
        if roll_index == 0:
            return True
        previous = frame.rolls[roll_index - 1]
        policy = decide_reset_policy(frame_index, roll_index - 1, previous.kind)
        return policy == ResetPolicy.FULL_RACK

    @staticmethod
    def classify_roll(
        frame_index: int,
        frame: Frame,
        roll_index: int,
        pins_before: int,
        pins: int,
    ) -> RollRecord:
        """
        判定单球结果

        Args:
            frame_index: 该球所在局索引
            frame: 该球所在局 (记录该球之前)
            roll_index: 该球在局内的序号
            pins_before: 本组球瓶之前已倒下的数量
            pins: 本球击倒数 (已限制在合法范围内)

        Returns:
            单球记录
        """
        if pins_before + pins < FULL_RACK:
            return RollRecord.count(pins)

        # 本组球瓶的第一球击倒全部为全中，否则为补中
        if FrameScoringEngine.faces_fresh_rack(frame_index, frame, roll_index):
            return RollRecord.strike()
        return RollRecord.spare(pins)

    @staticmethod
    def ends_game(frame: Frame, roll_index: int, roll: RollRecord) -> bool:
        """第 10 局的某一球之后比赛是否结束"""
        if roll_index >= 2:
            return True
        if roll_index == 1:
            # 第 10 局前两球既无全中也无补中: 没有第三球
            return not frame.is_strike and not roll.is_spare
        return False

    @staticmethod
    def record_roll(session: GameSession, pins_down_this_roll: int) -> GameSession:
        """
        记录一球

        Args:
            session: 当前比赛状态
            pins_down_this_roll: 本球新击倒的球瓶数 (超出范围会被限制)

        Returns:
            新的比赛状态; 比赛已结束时原样返回
        """
        if session.is_game_over:
            logger.warning(f"Roll of {pins_down_this_roll} pins ignored: game is over")
            return session

        frame_index = session.current_frame_index
        roll_index = session.current_roll_index
        pins_before = session.pins_down_before_this_roll

        pins = max(0, min(int(pins_down_this_roll), FULL_RACK - pins_before))
        if pins != pins_down_this_roll:
            logger.debug(f"Clamped pin delta {pins_down_this_roll} to {pins}")

        frame = session.frames[frame_index]
        roll = FrameScoringEngine.classify_roll(frame_index, frame, roll_index, pins_before, pins)

        is_game_over = False
        if frame_index == LAST_FRAME:
            is_game_over = FrameScoringEngine.ends_game(frame, roll_index, roll)
            next_frame, next_roll = frame_index, (roll_index if is_game_over else roll_index + 1)
        elif roll_index == 0 and not roll.is_strike:
            next_frame, next_roll = frame_index, 1
        else:
            next_frame, next_roll = frame_index + 1, 0

        policy = decide_reset_policy(frame_index, roll_index, roll.kind, is_game_over)
        next_baseline = 0 if policy == ResetPolicy.FULL_RACK else pins_before + pins

        frames = list(session.frames)
        frames[frame_index] = frame.with_roll(roll)

        logger.info(f"Frame {frame_index + 1} ball {roll_index + 1}: {roll.symbol}")

        return GameSession(
            frames=FrameScoringEngine.recompute(frames),
            current_frame_index=next_frame,
            current_roll_index=next_roll,
            pins_down_before_this_roll=next_baseline,
            is_game_over=is_game_over,
        )

    @staticmethod
    def frame_score(frames: List[Frame], index: int, values: List[int], start: int) -> Optional[int]:
        """
        单局得分 (不含之前各局)

        Args:
            frames: 全部局
            index: 局索引
            values: 全部球的击倒数 (按顺序展开)
            start: 该局第一球在 values 中的位置

        Returns:
            得分，依赖的球尚未投出时返回 None
        """
        frame = frames[index]
        if not frame.rolls:
            return None

        if index == LAST_FRAME:
            needed = 3 if (frame.is_strike or frame.is_spare) else 2
            if len(frame.rolls) < needed:
                return None
            return sum(frame.values[:needed])

        if frame.is_strike:
            # 全中: 加后两球 (连续全中时跨到再下一局)
            if start + 2 >= len(values):
                return None
            return FULL_RACK + values[start + 1] + values[start + 2]

        if len(frame.rolls) < 2:
            return None

        if frame.is_spare:
            if start + 2 >= len(values):
                return None
            return FULL_RACK + values[start + 2]

        return values[start] + values[start + 1]

    @staticmethod
    def recompute(frames: Iterable[Frame]) -> Tuple[Frame, ...]:
        """
        重算所有局的累计得分

        某一局未确定时，其后所有局也保持未确定

        Returns:
            带累计得分的局
        """
        frames = list(frames)
        values: List[int] = []
        starts: List[int] = []
        for frame in frames:
            starts.append(len(values))
            values.extend(frame.values)

        result = []
        cumulative = 0
        pending = False
        for index, frame in enumerate(frames):
            score = None
            if not pending:
                score = FrameScoringEngine.frame_score(frames, index, values, starts[index])
            if score is None:
                pending = True
                result.append(frame.with_score(None))
            else:
                cumulative += score
                result.append(frame.with_score(cumulative))
        return tuple(result)

    @staticmethod
    def replay(rolls: Iterable[int], session: Optional[GameSession] = None) -> GameSession:
        """
        按顺序记录一串击倒数

        Args:
            rolls: 每球新击倒的球瓶数
            session: 起始状态，默认新比赛

        Returns:
            最终状态
        """
        session = session or GameSession.new()
        for pins in rolls:
            session = FrameScoringEngine.record_roll(session, pins)
        return session
