"""
Core Layer - 纯规则逻辑 (无物理/渲染依赖)

Modules:
    pins: 球瓶与倒瓶锁存
    timers: 模拟时钟计时器
    lifecycle: 投球生命周期状态机
    frames: 单球记录与局
    scoring: 计分引擎与比赛状态
    reset: 重置策略
"""
from .pins import (
    Pin,
    PinSet,
    PinState,
    PIN_COUNT,
    TILT_THRESHOLD_DEG,
    is_tipped,
    rack_positions,
)

from .timers import DelayTimer

from .lifecycle import (
    BallContact,
    RollPhase,
    RollLifecycleState,
    RollLifecycle,
    SETTLE_DELAY,
    LANE_CONTACT_Z,
    parse_contacts,
)

from .frames import (
    RollKind,
    RollRecord,
    Frame,
    FRAME_COUNT,
    LAST_FRAME,
    FULL_RACK,
    slots_for,
)

from .scoring import GameSession, FrameScoringEngine

from .reset import ResetPolicy, decide_reset_policy

__all__ = [
    # pins
    "Pin",
    "PinSet",
    "PinState",
    "PIN_COUNT",
    "TILT_THRESHOLD_DEG",
    "is_tipped",
    "rack_positions",
    # timers
    "DelayTimer",
    # lifecycle
    "BallContact",
    "RollPhase",
    "RollLifecycleState",
    "RollLifecycle",
    "SETTLE_DELAY",
    "LANE_CONTACT_Z",
    "parse_contacts",
    # frames
    "RollKind",
    "RollRecord",
    "Frame",
    "FRAME_COUNT",
    "LAST_FRAME",
    "FULL_RACK",
    "slots_for",
    # scoring
    "GameSession",
    "FrameScoringEngine",
    # reset
    "ResetPolicy",
    "decide_reset_policy",
]
