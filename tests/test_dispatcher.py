import pytest

from rlbridge.bridge.contracts import ActionName, BulletFiredEvent, decode_action
from rlbridge.bridge.dispatcher import OPERATIONS, dispatch
from rlbridge.bridge.errors import SimulationError

from tests._support.fakes import FakeBullet, FakeSim


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ({"name": "doNothing"}, ("do_nothing", None)),
        ({"name": "ahead", "value": 5}, ("ahead", 5.0)),
        ({"name": "back", "value": 2.5}, ("back", 2.5)),
        ({"name": "turnLeft", "value": 90}, ("turn_left", 90.0)),
        ({"name": "turnRight", "value": 45}, ("turn_right", 45.0)),
        ({"name": "turnRadarLeft", "value": 10}, ("turn_radar_left", 10.0)),
        ({"name": "turnRadarRight", "value": 10}, ("turn_radar_right", 10.0)),
        ({"name": "turnGunLeft", "value": 15}, ("turn_gun_left", 15.0)),
        ({"name": "turnGunRight", "value": 15}, ("turn_gun_right", 15.0)),
        (
            {"name": "setAdjustRadarForRobotTurn", "value": True},
            ("set_adjust_radar_for_robot_turn", True),
        ),
        (
            {"name": "setAdjustRadarForGunTurn", "value": False},
            ("set_adjust_radar_for_gun_turn", False),
        ),
        (
            {"name": "setAdjustGunForRobotTurn", "value": True},
            ("set_adjust_gun_for_robot_turn", True),
        ),
        ({"name": "fire", "value": 3}, ("fire_bullet", 3.0)),
        ({"name": "scan"}, ("scan", None)),
        ({"name": "stop", "value": True}, ("stop", True)),
        ({"name": "resume"}, ("resume", None)),
    ],
)
def test_each_action_calls_one_operation(raw: dict, expected: tuple) -> None:
    sim = FakeSim()

    dispatch(decode_action(raw), sim)

    assert sim.calls == [expected]


def test_every_action_name_has_an_operation() -> None:
    assert set(OPERATIONS) == set(ActionName)


def test_unknown_action_touches_nothing() -> None:
    sim = FakeSim()

    assert dispatch(decode_action({"name": "levitate", "value": 3}), sim) is None
    assert sim.calls == []


def test_fire_reports_the_bullet() -> None:
    sim = FakeSim(bullet=FakeBullet(power=2.0))

    fired = dispatch(decode_action({"name": "fire", "value": 2}), sim)

    assert isinstance(fired, BulletFiredEvent)
    assert fired.time == 1
    assert fired.bullet.power == 2.0
    assert fired.bullet.owner == "bot"


def test_fire_without_bullet_reports_nothing() -> None:
    sim = FakeSim()

    assert dispatch(decode_action({"name": "fire", "value": 1}), sim) is None


def test_simulation_errors_propagate() -> None:
    sim = FakeSim(fail_on={"ahead"})

    with pytest.raises(SimulationError):
        dispatch(decode_action({"name": "ahead", "value": 1}), sim)
