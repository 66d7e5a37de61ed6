"""
回合控制器

每个 tick 由物理/场景层调用一次 tick()，同步运行到结束:
1. 更新球瓶倒瓶状态
2. 处理玩家动作 (拿球、出手、切换模式、重置)
3. 自由模式: 全倒后延时重摆
4. 计分模式: 推进投球生命周期，本球判定后记分并决定重置方式

比赛状态、球瓶、生命周期都只归本类所有，外部只读取快照
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Union
import logging

from core.frames import RollRecord
from core.lifecycle import RollLifecycle, RollLifecycleState, RollPhase
from core.pins import PinSet
from core.reset import ResetPolicy, decide_reset_policy
from core.scoring import FrameScoringEngine, GameSession

from .config import LaneConfig
from .mode import GameMode, GameModeGate
from .observation import ActionEvent, ActionKind, BallObservation, TickObservation
from .scoreboard import PinHud, ScoreboardSnapshot

logger = logging.getLogger(__name__)


class LaneEvent(Enum):
    """输出给 UI 层的事件"""
    ROLL_RECORDED = "roll_recorded"
    INVALID_THROW = "invalid_throw"
    GAME_OVER = "game_over"            # 询问玩家是否再来一局
    CONFIRM_RESET = "confirm_reset"    # 计分模式下的重置需要玩家确认
    GRAB_REJECTED = "grab_rejected"
    NEW_GAME = "new_game"
    MODE_CHANGED = "mode_changed"
    RERACKED = "reracked"


@dataclass
class TickResult:
    """
    一个 tick 的输出

    Attributes:
        commands: 场景层需要执行的重置命令 (按顺序)
        events: UI 事件
        fallen_ids: 当前倒下的球瓶
        scoreboard: 计分板快照
        scoreboard_visible: 计分板是否显示 (仅计分模式)
        pin_hud: 球瓶 HUD
        lifecycle: 投球生命周期状态
        mode: 当前模式
        time: 模拟时间
        last_roll: 本 tick 记录的一球
    """
    commands: List[ResetPolicy] = field(default_factory=list)
    events: List[LaneEvent] = field(default_factory=list)
    fallen_ids: FrozenSet[int] = frozenset()
    scoreboard: Optional[ScoreboardSnapshot] = None
    scoreboard_visible: bool = False
    pin_hud: Optional[PinHud] = None
    lifecycle: RollLifecycleState = field(default_factory=RollLifecycleState)
    mode: GameMode = GameMode.FREEPLAY
    time: float = 0.0
    last_roll: Optional[RollRecord] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commands": [c.value for c in self.commands],
            "events": [e.value for e in self.events],
            "fallen_ids": sorted(self.fallen_ids),
            "scoreboard": self.scoreboard.to_dict() if self.scoreboard else None,
            "scoreboard_visible": self.scoreboard_visible,
            "phase": self.lifecycle.phase.value,
            "mode": self.mode.value,
            "time": self.time,
            "last_roll": self.last_roll.symbol if self.last_roll else None,
        }


class TurnController:
    """
    保龄球回合控制器

    API:
    - tick(observation) -> TickResult
    - start_new_game()
    """

    def __init__(
        self,
        config: Optional[LaneConfig] = None,
        mode: Union[GameMode, str] = GameMode.FREEPLAY,
    ):
        """
        Args:
            config: 球道配置
            mode: 初始模式
        """
        self.config = config or LaneConfig()

        self._pins = PinSet(
            count=self.config.pin_count,
            tilt_threshold_deg=self.config.tilt_threshold_deg,
            spacing=self.config.pin_spacing,
            head_z=self.config.head_pin_z,
        )
        self._lifecycle = RollLifecycle(
            settle_delay=self.config.settle_delay,
            lane_contact_z=self.config.lane_contact_z,
            stall_speed=self.config.stall_speed,
        )
        self._gate = GameModeGate(
            mode=mode,
            rerack_delay=self.config.rerack_delay,
            grab_speed_limit=self.config.grab_speed_limit,
        )
        self._session = GameSession.new()
        self._now = 0.0

    @property
    def session(self) -> GameSession:
        return self._session

    @property
    def pins(self) -> PinSet:
        return self._pins

    @property
    def lifecycle(self) -> RollLifecycle:
        return self._lifecycle

    @property
    def gate(self) -> GameModeGate:
        return self._gate

    @property
    def mode(self) -> GameMode:
        return self._gate.mode

    @property
    def now(self) -> float:
        return self._now

    def tick(self, observation: TickObservation) -> TickResult:
        """
        处理一个 tick 的观测

        Args:
            observation: 本 tick 的输入

        Returns:
            本 tick 的输出
        """
        self._now += max(0.0, observation.dt)
        result = TickResult()

        for pin in observation.pins:
            self._pins.update(pin.pin_id, pin.up_vector, pin.height_above_lane)

        for action in observation.actions:
            self._handle_action(action, observation.ball, result)

        if self._gate.watch_pins(self._pins, self._now):
            logger.info("All pins down, reracking")
            self._full_rack(result)
            result.events.append(LaneEvent.RERACKED)

        if self._gate.is_scoring and not self._session.is_game_over:
            ball = observation.ball
            state = self._lifecycle.observe(
                ball.contacts,
                ball.lane_z,
                ball.is_sleeping,
                self._now,
                linear_speed=ball.linear_speed,
            )
            if state.is_resolved:
                self._resolve_roll(state, result)

        return self._finish(result)

    def start_new_game(self) -> TickResult:
        """开始新比赛 (不经过 tick 的直接调用)"""
        result = TickResult()
        self._start_new_game(result)
        return self._finish(result)

    def snapshot(self) -> ScoreboardSnapshot:
        return ScoreboardSnapshot.from_session(self._session)

    def _handle_action(self, action: ActionEvent, ball: BallObservation, result: TickResult):
        """处理单个动作"""
        kind = action.kind

        if kind == ActionKind.THROW_RELEASED:
            self._lifecycle.release()
            # 新的一球取消待触发的自动重摆
            self._gate.cancel_timers()

        elif kind == ActionKind.BALL_GRABBED:
            if not self._gate.can_grab(ball.linear_speed, ball.contacts, self._lifecycle.touched_lane):
                logger.debug("Grab rejected: ball in play")
                result.events.append(LaneEvent.GRAB_REJECTED)
                return
            if not self._gate.is_scoring and self._pins.clear_fallen():
                # 自由模式: 拿球即清走倒瓶，清空后立即重摆
                if self._pins.present_ids():
                    result.commands.append(ResetPolicy.CLEAR_FALLEN_ONLY)
                else:
                    self._full_rack(result)
                    result.events.append(LaneEvent.RERACKED)
            self._lifecycle.grab()

        elif kind == ActionKind.MODE_CHANGED:
            if not self._gate.set_mode(action.mode):
                return
            result.events.append(LaneEvent.MODE_CHANGED)
            if self._gate.is_scoring:
                self._start_new_game(result)
            elif self._lifecycle.phase != RollPhase.HELD:
                self._lifecycle.reset()

        elif kind == ActionKind.EXPLICIT_RESET_REQUESTED:
            if self._gate.is_scoring:
                # 先作废进行中的一球并放回球，再由 UI 询问是否重开，
                # 确认后以 START_NEW_GAME_REQUESTED 返回
                self._lifecycle.reset()
                self._gate.cancel_timers()
                result.commands.append(ResetPolicy.RESPOT_BALL_ONLY)
                result.events.append(LaneEvent.CONFIRM_RESET)
            else:
                self._full_rack(result)
                result.events.append(LaneEvent.RERACKED)

        elif kind == ActionKind.START_NEW_GAME_REQUESTED:
            self._start_new_game(result)

        else:
            raise ValueError(f"Unknown action kind: {kind}")

    def _start_new_game(self, result: TickResult):
        self._session = GameSession.new()
        self._full_rack(result)
        result.events.append(LaneEvent.NEW_GAME)
        logger.info("New game started")

    def _full_rack(self, result: TickResult):
        """重摆全部球瓶并放回球，取消所有计时器"""
        self._pins.rack(self.config.pin_count)
        self._gate.on_rack()
        self._lifecycle.reset()
        result.commands.append(ResetPolicy.FULL_RACK)

    def _resolve_roll(self, state: RollLifecycleState, result: TickResult):
        """处理已判定的一球"""
        if not state.valid:
            # 无效投球: 不计分，只把球放回
            self._lifecycle.reset()
            result.commands.append(ResetPolicy.RESPOT_BALL_ONLY)
            result.events.append(LaneEvent.INVALID_THROW)
            return

        before = self._session
        fallen = len(self._pins.fallen_ids())
        pins_this_roll = max(0, fallen - before.pins_down_before_this_roll)

        self._session = FrameScoringEngine.record_roll(before, pins_this_roll)
        frame_index = before.current_frame_index
        roll_index = before.current_roll_index
        roll = self._session.frames[frame_index].rolls[-1]
        result.last_roll = roll
        result.events.append(LaneEvent.ROLL_RECORDED)

        policy = decide_reset_policy(frame_index, roll_index, roll.kind, self._session.is_game_over)
        if policy == ResetPolicy.FULL_RACK:
            self._full_rack(result)
        else:
            if policy == ResetPolicy.CLEAR_FALLEN_ONLY:
                self._pins.clear_fallen()
            self._lifecycle.reset()
            result.commands.append(policy)

        if self._session.is_game_over:
            logger.info(f"Game over, final score {self._session.total_score}")
            result.events.append(LaneEvent.GAME_OVER)

    def _finish(self, result: TickResult) -> TickResult:
        result.fallen_ids = self._pins.fallen_ids()
        result.scoreboard = self.snapshot()
        result.scoreboard_visible = self._gate.is_scoring
        result.pin_hud = PinHud.from_pins(self._pins)
        result.lifecycle = self._lifecycle.state
        result.mode = self._gate.mode
        result.time = self._now
        return result

    def render_text(self) -> str:
        """文本渲染 (调试用)"""
        lines = []
        lines.append("=" * 50)
        lines.append(f"Mode: {self._gate.mode.value}")
        lines.append(f"Phase: {self._lifecycle.phase.value}")
        if self._gate.is_scoring:
            lines.append(self.snapshot().render_text())
            if self._session.is_game_over:
                lines.append(f"Game Over! Final score: {self._session.total_score}")
        lines.append(PinHud.from_pins(self._pins).render_text())
        lines.append("=" * 50)
        return "\n".join(lines)
