"""
重置策略

每一球判定后，决定场景层如何准备下一球:
- FULL_RACK: 重新摆满 10 个球瓶
- CLEAR_FALLEN_ONLY: 只清走倒下的球瓶，站立的球瓶保持原位
- RESPOT_BALL_ONLY: 球瓶不动，只把球放回原位
"""
from enum import Enum

from .frames import RollKind


class ResetPolicy(Enum):
    """下一球前的重置方式"""
    FULL_RACK = "full_rack"
    CLEAR_FALLEN_ONLY = "clear_fallen_only"
    RESPOT_BALL_ONLY = "respot_ball_only"


def decide_reset_policy(
    frame_index: int,
    roll_index: int,
    outcome: RollKind,
    is_game_over: bool = False,
) -> ResetPolicy:
    """
    根据刚记录的一球决定重置方式

    Args:
        frame_index: 该球所在局 (0-9)
        roll_index: 该球在局内的序号 (0-2)
        outcome: 该球结果
        is_game_over: 记录该球后比赛是否结束

    Returns:
        重置策略
    """
    if is_game_over:
        return ResetPolicy.RESPOT_BALL_ONLY

    # 全中或补中: 球瓶已清空，下一球需要整组重摆
    if outcome in (RollKind.STRIKE, RollKind.SPARE):
        return ResetPolicy.FULL_RACK

    # 一组球瓶的第一球未全中: 第二球面对剩余球瓶
    if roll_index == 0:
        return ResetPolicy.CLEAR_FALLEN_ONLY

    # 第 1-9 局第二球后进入新的一局; 第 10 局全中后的第二球之后，奖励球重新摆瓶
    return ResetPolicy.FULL_RACK
