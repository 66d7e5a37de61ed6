"""
脚本化球道

用确定性的合成观测驱动 TurnController，代替真实物理引擎:
- 按指定数量 (或指定编号) 击倒球瓶
- 球瓶分多个 tick 逐渐倾倒
- 执行控制器返回的重置命令

用于命令行模拟与集成测试
"""
from typing import Dict, Iterable, List, Optional, Sequence, Union
import logging
import numpy as np

from core.lifecycle import BallContact
from core.reset import ResetPolicy

from .controller import LaneEvent, TickResult, TurnController
from .observation import ActionEvent, BallObservation, PinObservation, TickObservation

logger = logging.getLogger(__name__)

# 球瓶倾倒过程 (度): 先小幅晃动，再倒下
TOPPLE_STEPS: Sequence[float] = (2.0, 4.0, 30.0, 90.0)

# 倒下后球瓶参考点高度
LYING_HEIGHT = 0.06
STANDING_HEIGHT = 0.19

# 结束一球的事件
TERMINAL_EVENTS = (LaneEvent.ROLL_RECORDED, LaneEvent.INVALID_THROW)


class ScriptedLane:
    """
    脚本化球道

    Attributes:
        controller: 被驱动的回合控制器
        dt: 每个 tick 的时长
    """

    def __init__(
        self,
        controller: TurnController,
        dt: float = 1.0 / 30.0,
        seed: Optional[int] = None,
    ):
        self.controller = controller
        self.dt = dt
        self._rng = np.random.default_rng(seed)
        # 物理层中各球瓶的倾角 (度)
        self._tilt: Dict[int, float] = {}

    @property
    def standing(self) -> List[int]:
        """物理层中仍站立且在场的球瓶"""
        present = self.controller.pins.present_ids()
        return sorted(i for i in present if self._tilt.get(i, 0.0) < TOPPLE_STEPS[-1])

    def pin_observations(self) -> List[PinObservation]:
        observations = []
        for pin_id in sorted(self.controller.pins.present_ids()):
            tilt = self._tilt.get(pin_id, 0.0)
            height = LYING_HEIGHT if tilt >= TOPPLE_STEPS[-1] else STANDING_HEIGHT
            observations.append(PinObservation.tilted(pin_id, tilt, height))
        return observations

    def step(
        self,
        ball: Optional[BallObservation] = None,
        actions: Iterable[ActionEvent] = (),
    ) -> TickResult:
        """
        推进一个 tick

        Args:
            ball: 球观测 (默认静止在手中)
            actions: 本 tick 的动作

        Returns:
            控制器输出
        """
        if ball is None:
            ball = BallObservation.create([BallContact.IN_HAND])
        observation = TickObservation.create(
            dt=self.dt,
            pins=self.pin_observations(),
            ball=ball,
            actions=actions,
        )
        result = self.controller.tick(observation)
        self._apply(result.commands)
        return result

    def _apply(self, commands: List[ResetPolicy]):
        """执行重置命令"""
        for command in commands:
            if command == ResetPolicy.FULL_RACK:
                self._tilt.clear()
            elif command == ResetPolicy.CLEAR_FALLEN_ONLY:
                for pin_id in list(self._tilt):
                    if pin_id not in self.controller.pins.present_ids():
                        del self._tilt[pin_id]

    def choose_targets(self, knock: Union[int, Iterable[int]]) -> List[int]:
        """选出本球要击倒的球瓶"""
        standing = self.standing
        if isinstance(knock, (int, np.integer)):
            count = max(0, min(int(knock), len(standing)))
            return sorted(int(i) for i in self._rng.choice(standing, size=count, replace=False)) if count else []
        return [i for i in knock if i in standing]

    def throw(
        self,
        knock: Union[int, Iterable[int]] = 0,
        gutter: bool = False,
        touch_lane: bool = True,
        travel_ticks: int = 8,
        max_seconds: float = 30.0,
    ) -> List[TickResult]:
        """
        完整投一球: 拿球、出手、滚动、击瓶、等待判定

        Args:
            knock: 击倒数量或指定编号
            gutter: 是否落入边沟 (不击倒任何球瓶)
            touch_lane: False 表示球直接落地，从未接触球道
            travel_ticks: 球在球道上滚动的 tick 数
            max_seconds: 最长等待时间

        Returns:
            每个 tick 的输出
        """
        results = [
            self.step(actions=[ActionEvent.ball_grabbed()]),
            self.step(actions=[ActionEvent.throw_released()]),
        ]

        if not touch_lane:
            ground = BallObservation.create([BallContact.GROUND], linear_speed=1.0, lane_z=-0.2)
            results.append(self.step(ground))
            return results

        contact = BallContact.GUTTER if gutter else BallContact.LANE
        for z in np.linspace(-1.0, -7.5, travel_ticks):
            results.append(self.step(BallObservation.create([contact], 6.0, lane_z=float(z))))

        targets = [] if gutter else self.choose_targets(knock)
        for degrees in TOPPLE_STEPS:
            for pin_id in targets:
                self._tilt[pin_id] = degrees
            results.append(self.step(BallObservation.create([BallContact.GROUND], 2.0, lane_z=-8.5)))
            if results[-1].events and any(e in TERMINAL_EVENTS for e in results[-1].events):
                return results

        resting = BallObservation.create([BallContact.GROUND], 0.0, is_sleeping=True, lane_z=-8.5)
        elapsed = 0.0
        while elapsed < max_seconds:
            result = self.step(resting)
            results.append(result)
            if any(e in TERMINAL_EVENTS for e in result.events):
                break
            elapsed += self.dt
        else:
            logger.warning(f"Throw did not resolve within {max_seconds:.1f} s")

        return results

    def jostle_upright(self, pin_ids: Iterable[int]):
        """把球瓶扶正 (模拟被撞回站立)"""
        for pin_id in pin_ids:
            self._tilt[pin_id] = 0.0

    def play(self, rolls: Iterable[int], **kwargs) -> List[TickResult]:
        """
        按顺序投出多球

        Args:
            rolls: 每球击倒数

        Returns:
            每一球最后一个 tick 的输出
        """
        finals = []
        for knock in rolls:
            if self.controller.session.is_game_over:
                break
            finals.append(self.throw(knock, **kwargs)[-1])
        return finals
