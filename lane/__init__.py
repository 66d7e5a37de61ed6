"""
Lane Layer - 与物理/场景层对接的 tick 驱动接口

Modules:
    config: 球道配置
    observation: 每个 tick 的输入
    mode: 游戏模式门控
    controller: 回合控制器
    scoreboard: 计分板与 HUD 快照
    scripted: 脚本化球道 (合成观测)
"""
from .config import LaneConfig

from .mode import GameMode, GameModeGate

from .observation import (
    PinObservation,
    BallObservation,
    ActionKind,
    ActionEvent,
    TickObservation,
)

from .controller import (
    LaneEvent,
    TickResult,
    TurnController,
)

from .scoreboard import (
    FrameCell,
    ScoreboardSnapshot,
    PinHud,
)

from .scripted import ScriptedLane

__all__ = [
    # config
    "LaneConfig",
    # mode
    "GameMode",
    "GameModeGate",
    # observation
    "PinObservation",
    "BallObservation",
    "ActionKind",
    "ActionEvent",
    "TickObservation",
    # controller
    "LaneEvent",
    "TickResult",
    "TurnController",
    # scoreboard
    "FrameCell",
    "ScoreboardSnapshot",
    "PinHud",
    # scripted
    "ScriptedLane",
]
