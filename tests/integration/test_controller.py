"""回合控制器集成测试"""
import pytest

from core.lifecycle import BallContact, RollPhase
from core.reset import ResetPolicy
from lane import (
    ActionEvent,
    BallObservation,
    GameMode,
    LaneConfig,
    LaneEvent,
    PinObservation,
    ScriptedLane,
    TickObservation,
    TurnController,
)

DT = 0.25


def tick(controller, pins=(), ball=None, actions=()):
    return controller.tick(TickObservation.create(DT, pins=pins, ball=ball, actions=actions))


def lane_ball(z=-2.0, speed=6.0):
    return BallObservation.create([BallContact.LANE], speed, lane_z=z)


def ground_ball(z=-8.5, sleeping=False):
    return BallObservation.create([BallContact.GROUND], 0.0 if sleeping else 2.0, sleeping, z)


def tick_until(controller, event, max_ticks=100, **kwargs):
    for _ in range(max_ticks):
        result = tick(controller, **kwargs)
        if event in result.events:
            return result
    raise AssertionError(f"{event} not emitted within {max_ticks} ticks")


@pytest.fixture
def scoring():
    return TurnController(mode=GameMode.SCORING)


@pytest.fixture
def freeplay():
    return TurnController(mode=GameMode.FREEPLAY)


@pytest.fixture
def lane(scoring):
    return ScriptedLane(scoring, dt=DT, seed=0)


class TestScoringFlow:
    """计分模式流程测试"""

    def test_first_ball(self, lane):
        result = lane.throw(7)[-1]
        session = lane.controller.session
        assert LaneEvent.ROLL_RECORDED in result.events
        assert result.last_roll.symbol == "7"
        assert result.commands == [ResetPolicy.CLEAR_FALLEN_ONLY]
        assert (session.current_frame_index, session.current_roll_index) == (0, 1)
        assert session.pins_down_before_this_roll == 7
        assert len(lane.controller.pins.present_ids()) == 3

    def test_spare_counts_cleared_pins(self, lane):
        lane.throw(7)
        result = lane.throw(3)[-1]
        assert result.last_roll.symbol == "/"
        assert result.commands == [ResetPolicy.FULL_RACK]
        assert lane.controller.pins.fallen_ids() == frozenset()
        assert lane.controller.session.current_frame_index == 1

    def test_strike_full_rack(self, lane):
        result = lane.throw(10)[-1]
        assert result.last_roll.symbol == "X"
        assert ResetPolicy.FULL_RACK in result.commands
        assert len(lane.controller.pins.standing_ids()) == 10

    def test_gutter_ball(self, lane):
        result = lane.throw(gutter=True)[-1]
        assert result.last_roll.symbol == "0"
        assert lane.controller.session.current_roll_index == 1

    def test_settle_delay(self, lane):
        results = lane.throw(4, travel_ticks=8)
        # 拿球、出手、8 个滚动 tick 之后第一次落地
        first_ground = results[10]
        assert first_ground.lifecycle.phase == RollPhase.THROWN
        assert lane.controller.lifecycle.settle_timer.pending is False
        assert results[-1].time - first_ground.time == pytest.approx(5.0)

    def test_scoreboard_in_result(self, lane):
        result = lane.throw(10)[-1]
        assert result.scoreboard_visible
        assert result.scoreboard.frames[0].rolls == ("X", "")
        assert result.pin_hud.fallen_ids == frozenset()

    def test_stalled_ball_resolves(self, scoring):
        # 球停在球道末端，没有接触标签也未被判定静止
        stalled = BallObservation.create([], 0.0, is_sleeping=False, lane_z=-8.8)
        tick(scoring, actions=[ActionEvent.ball_grabbed()])
        tick(scoring, actions=[ActionEvent.throw_released()])
        tick(scoring, ball=lane_ball())
        tick(scoring, pins=[PinObservation.tilted(4, 90.0, 0.06)], ball=stalled)
        result = tick_until(scoring, LaneEvent.ROLL_RECORDED, max_ticks=240, ball=stalled)
        assert result.last_roll.symbol == "1"
        assert scoring.session.current_roll_index == 1

        result = tick(scoring, ball=stalled, actions=[ActionEvent.ball_grabbed()])
        assert LaneEvent.GRAB_REJECTED not in result.events
        assert result.lifecycle.phase == RollPhase.HELD


class TestFullGame:
    """整局测试"""

    def test_perfect_game(self, lane):
        finals = lane.play([10] * 12)
        assert len(finals) == 12
        assert LaneEvent.GAME_OVER in finals[-1].events
        assert finals[-1].commands == [ResetPolicy.RESPOT_BALL_ONLY]
        assert lane.controller.session.total_score == 300

    def test_mixed_game(self, lane):
        lane.play([10, 7, 3, 9, 0, 10, 0, 8, 8, 2, 0, 6, 10, 10, 10, 8, 1])
        session = lane.controller.session
        assert session.is_game_over
        assert session.total_score == 167

    def test_tenth_bonus_ball_after_strike_count(self, lane):
        finals = lane.play([0] * 18 + [10, 7, 10])
        assert finals[-2].commands == [ResetPolicy.FULL_RACK]
        assert lane.controller.session.frames[9].symbols(3) == ["X", "7", "X"]
        assert lane.controller.session.total_score == 27

    def test_balls_after_game_over_ignored(self, lane):
        lane.play([0] * 20)
        session = lane.controller.session
        results = lane.throw(5, max_seconds=6.0)
        assert all(LaneEvent.ROLL_RECORDED not in r.events for r in results)
        assert lane.controller.session is session


class TestInvalidThrow:
    """无效投球测试"""

    def test_indices_unchanged(self, lane):
        lane.throw(4)
        before = lane.controller.session
        result = lane.throw(touch_lane=False)[-1]
        assert LaneEvent.INVALID_THROW in result.events
        assert result.commands == [ResetPolicy.RESPOT_BALL_ONLY]
        assert lane.controller.session is before
        assert lane.controller.lifecycle.phase == RollPhase.IDLE

    def test_can_throw_again(self, lane):
        lane.throw(touch_lane=False)
        result = lane.throw(6)[-1]
        assert result.last_roll.symbol == "6"

    def test_pins_untouched(self, lane):
        lane.throw(4)
        present = lane.controller.pins.present_ids()
        lane.throw(touch_lane=False)
        assert lane.controller.pins.present_ids() == present


class TestGrab:
    """拿球测试"""

    def test_rejected_after_lane_contact(self, scoring):
        tick(scoring, actions=[ActionEvent.ball_grabbed()])
        tick(scoring, actions=[ActionEvent.throw_released()])
        tick(scoring, ball=lane_ball(-2.0, speed=0.0))
        result = tick(scoring, ball=lane_ball(-2.5, speed=0.0), actions=[ActionEvent.ball_grabbed()])
        assert LaneEvent.GRAB_REJECTED in result.events
        assert scoring.lifecycle.phase == RollPhase.THROWN

    def test_regrab_from_gutter(self, scoring):
        gutter = BallObservation.create([BallContact.GUTTER], 3.0, lane_z=-3.0)
        tick(scoring, actions=[ActionEvent.ball_grabbed()])
        tick(scoring, actions=[ActionEvent.throw_released()])
        tick(scoring, ball=gutter)
        assert scoring.lifecycle.settling

        result = tick(scoring, ball=gutter, actions=[ActionEvent.ball_grabbed()])
        assert LaneEvent.GRAB_REJECTED not in result.events
        assert result.lifecycle.phase == RollPhase.HELD
        assert not scoring.lifecycle.settling
        assert scoring.session.roll_count == 0

    def test_fast_ball_rejected(self, freeplay):
        result = tick(freeplay, ball=lane_ball(-2.0, speed=4.0), actions=[ActionEvent.ball_grabbed()])
        assert LaneEvent.GRAB_REJECTED in result.events


class TestPinLatch:
    """倒瓶锁存集成测试"""

    def test_pin_knocked_back_up_still_counts(self, scoring):
        tick(scoring, actions=[ActionEvent.ball_grabbed()])
        tick(scoring, actions=[ActionEvent.throw_released()])
        tick(scoring, ball=lane_ball())
        tick(scoring, pins=[PinObservation.tilted(0, 90.0, 0.06)], ball=ground_ball())
        tick(scoring, pins=[PinObservation.upright(0)], ball=ground_ball())
        result = tick_until(
            scoring,
            LaneEvent.ROLL_RECORDED,
            pins=[PinObservation.upright(0)],
            ball=ground_ball(sleeping=True),
        )
        assert result.last_roll.symbol == "1"
        assert 0 not in scoring.pins.present_ids()

    def test_jostled_pins_stay_down(self, lane):
        results = lane.throw(3, max_seconds=1.0)
        knocked = results[-1].fallen_ids
        assert len(knocked) == 3

        lane.jostle_upright(knocked)
        result = lane.step()
        assert result.fallen_ids == knocked

        for _ in range(40):
            result = lane.step()
            if LaneEvent.ROLL_RECORDED in result.events:
                break
        assert result.last_roll.symbol == "3"
        assert lane.controller.pins.present_ids() == frozenset(range(10)) - knocked

    def test_pin_below_lane(self, scoring):
        tick(scoring, actions=[ActionEvent.ball_grabbed()])
        tick(scoring, actions=[ActionEvent.throw_released()])
        tick(scoring, ball=lane_ball())
        pins = [PinObservation(5, height_above_lane=-0.3)]
        result = tick_until(scoring, LaneEvent.ROLL_RECORDED, pins=pins, ball=ground_ball(sleeping=True))
        assert result.last_roll.symbol == "1"


class TestFreeplay:
    """自由模式测试"""

    def test_no_scoring(self, freeplay):
        lane = ScriptedLane(freeplay, dt=DT, seed=1)
        results = lane.throw(4, max_seconds=6.0)
        assert all(LaneEvent.ROLL_RECORDED not in r.events for r in results)
        assert freeplay.session.roll_count == 0
        assert not results[-1].scoreboard_visible

    def test_grab_clears_fallen(self, freeplay):
        tick(freeplay, pins=[PinObservation.tilted(i, 90.0, 0.06) for i in (0, 1)])
        result = tick(freeplay, actions=[ActionEvent.ball_grabbed()])
        assert result.commands == [ResetPolicy.CLEAR_FALLEN_ONLY]
        assert freeplay.pins.present_ids() == frozenset(range(2, 10))

    def test_grab_without_fallen(self, freeplay):
        result = tick(freeplay, actions=[ActionEvent.ball_grabbed()])
        assert result.commands == []

    def test_rerack_after_all_down(self, freeplay):
        tick(freeplay, pins=[PinObservation.tilted(i, 90.0, 0.06) for i in range(10)])
        start = freeplay.now
        result = tick_until(freeplay, LaneEvent.RERACKED)
        assert result.commands == [ResetPolicy.FULL_RACK]
        assert result.time - start == pytest.approx(5.0)
        assert freeplay.pins.fallen_ids() == frozenset()

    def test_rerack_after_clear(self, freeplay):
        # 先清走一部分，剩余的全倒后同样触发重摆
        tick(freeplay, pins=[PinObservation.tilted(i, 90.0, 0.06) for i in range(6)])
        tick(freeplay, actions=[ActionEvent.ball_grabbed()])
        tick(freeplay, pins=[PinObservation.tilted(i, 90.0, 0.06) for i in range(6, 10)])
        assert freeplay.gate.rerack_pending
        tick_until(freeplay, LaneEvent.RERACKED)
        assert len(freeplay.pins.present_ids()) == 10

    def test_grab_reracks_when_nothing_left(self, freeplay):
        tick(freeplay, pins=[PinObservation.tilted(i, 90.0, 0.06) for i in range(10)])
        assert freeplay.gate.rerack_pending

        result = tick(freeplay, actions=[ActionEvent.ball_grabbed()])
        assert LaneEvent.RERACKED in result.events
        assert result.commands == [ResetPolicy.FULL_RACK]
        assert result.lifecycle.phase == RollPhase.HELD
        assert len(freeplay.pins.present_ids()) == 10

        tick(freeplay, actions=[ActionEvent.throw_released()])
        assert not freeplay.gate.rerack_pending

    def test_release_cancels_rerack(self, freeplay):
        tick(freeplay, pins=[PinObservation.tilted(i, 90.0, 0.06) for i in range(10)])
        assert freeplay.gate.rerack_pending

        tick(freeplay, actions=[ActionEvent.throw_released()])
        assert not freeplay.gate.rerack_pending
        for _ in range(40):
            assert LaneEvent.RERACKED not in tick(freeplay).events

    def test_partial_clear_then_release(self, freeplay):
        tick(freeplay, pins=[PinObservation.tilted(i, 90.0, 0.06) for i in range(4)])
        tick(freeplay, actions=[ActionEvent.ball_grabbed()])
        tick(freeplay, actions=[ActionEvent.throw_released()])
        assert not freeplay.gate.rerack_pending
        assert freeplay.pins.present_ids() == frozenset(range(4, 10))

    def test_custom_rerack_delay(self):
        controller = TurnController(LaneConfig(rerack_delay=1.0))
        tick(controller, pins=[PinObservation.tilted(i, 90.0, 0.06) for i in range(10)])
        result = tick_until(controller, LaneEvent.RERACKED)
        assert result.time == pytest.approx(1.25)


class TestModeAndReset:
    """模式切换与重置测试"""

    def test_switch_to_scoring_starts_game(self, freeplay):
        tick(freeplay, pins=[PinObservation.tilted(0, 90.0, 0.06)])
        result = tick(freeplay, actions=[ActionEvent.mode_changed(GameMode.SCORING)])
        assert result.events == [LaneEvent.MODE_CHANGED, LaneEvent.NEW_GAME]
        assert result.commands == [ResetPolicy.FULL_RACK]
        assert result.scoreboard_visible
        assert freeplay.pins.fallen_ids() == frozenset()

    def test_switch_to_same_mode(self, scoring):
        result = tick(scoring, actions=[ActionEvent.mode_changed(GameMode.SCORING)])
        assert result.events == []

    def test_switch_to_freeplay_keeps_held_ball(self, scoring):
        tick(scoring, actions=[ActionEvent.ball_grabbed()])
        result = tick(scoring, actions=[ActionEvent.mode_changed(GameMode.FREEPLAY)])
        assert result.lifecycle.phase == RollPhase.HELD
        assert not result.scoreboard_visible

    def test_switch_mid_game_discards_session(self, lane):
        lane.throw(10)
        controller = lane.controller
        lane.step(actions=[ActionEvent.mode_changed(GameMode.FREEPLAY)])
        lane.step(actions=[ActionEvent.mode_changed(GameMode.SCORING)])
        assert controller.session.roll_count == 0

    def test_reset_in_scoring_asks_confirmation(self, lane):
        lane.throw(10)
        session = lane.controller.session
        result = lane.step(actions=[ActionEvent.explicit_reset_requested()])
        assert result.events == [LaneEvent.CONFIRM_RESET]
        assert result.commands == [ResetPolicy.RESPOT_BALL_ONLY]
        assert lane.controller.session is session

    def test_reset_discards_settling_roll(self, scoring):
        tick(scoring, actions=[ActionEvent.ball_grabbed()])
        tick(scoring, actions=[ActionEvent.throw_released()])
        tick(scoring, ball=lane_ball())
        tick(scoring, pins=[PinObservation.tilted(0, 90.0, 0.06)], ball=ground_ball())
        assert scoring.lifecycle.settling

        result = tick(scoring, ball=ground_ball(), actions=[ActionEvent.explicit_reset_requested()])
        assert result.events == [LaneEvent.CONFIRM_RESET]
        assert result.commands == [ResetPolicy.RESPOT_BALL_ONLY]
        assert result.lifecycle.phase == RollPhase.IDLE
        assert not scoring.lifecycle.settling

        for _ in range(30):
            result = tick(scoring, ball=ground_ball(sleeping=True))
            assert LaneEvent.ROLL_RECORDED not in result.events
        assert scoring.session.roll_count == 0

    def test_confirmed_reset(self, lane):
        lane.throw(10)
        result = lane.step(actions=[ActionEvent.start_new_game_requested()])
        assert LaneEvent.NEW_GAME in result.events
        assert result.commands == [ResetPolicy.FULL_RACK]
        assert lane.controller.session.roll_count == 0

    def test_reset_in_freeplay(self, freeplay):
        tick(freeplay, pins=[PinObservation.tilted(3, 90.0, 0.06)])
        result = tick(freeplay, actions=[ActionEvent.explicit_reset_requested()])
        assert result.events == [LaneEvent.RERACKED]
        assert result.commands == [ResetPolicy.FULL_RACK]
        assert freeplay.pins.fallen_ids() == frozenset()

    def test_new_game_after_game_over(self, lane):
        lane.play([0] * 20)
        result = lane.controller.start_new_game()
        assert LaneEvent.NEW_GAME in result.events
        assert not lane.controller.session.is_game_over
        assert lane.throw(3)[-1].last_roll.symbol == "3"


class TestTickResult:
    """TickResult 测试"""

    def test_time_accumulates(self, freeplay):
        for _ in range(4):
            result = tick(freeplay)
        assert result.time == pytest.approx(1.0)

    def test_to_dict(self, lane):
        data = lane.throw(10)[-1].to_dict()
        assert data["events"] == ["roll_recorded"]
        assert data["last_roll"] == "X"
        assert data["commands"] == ["full_rack"]
        assert data["mode"] == "scoring"

    def test_render_text(self, lane):
        lane.throw(10)
        text = lane.controller.render_text()
        assert "Mode: scoring" in text
        assert "X" in text
