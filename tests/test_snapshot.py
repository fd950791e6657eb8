from rlbridge.bridge.errors import SimulationError
from rlbridge.bridge.scheduler import ExitReason, TurnScheduler
from rlbridge.bridge.snapshot import STATE_FIELDS, read_reading, snapshot

from tests._support.fakes import FakeSim, ScriptedTransport


def test_snapshot_has_every_field() -> None:
    state = snapshot(FakeSim())

    assert tuple(state) == STATE_FIELDS
    assert state["energy"] == 100.0
    assert state["others"] == 1
    assert state["time"] == 0


def test_missing_readings_become_none() -> None:
    class Partial:
        energy = 42.0

    state = snapshot(Partial())

    assert state["energy"] == 42.0
    assert state["x"] is None
    assert all(state[name] is None for name in STATE_FIELDS if name != "energy")


def test_callable_readings_are_invoked() -> None:
    class Engine:
        def energy(self) -> float:
            return 55.5

        def gun_heat(self) -> float:
            raise SimulationError("not in a round", error_code="no_round")

    engine = Engine()

    assert read_reading(engine, "energy") == 55.5
    assert read_reading(engine, "gun_heat") is None


def test_non_scalar_readings_are_dropped() -> None:
    sim = FakeSim()
    sim.heading = "north"
    sim.velocity = [1, 2]

    state = snapshot(sim)

    assert state["heading"] is None
    assert state["velocity"] is None


class _DyingSim(FakeSim):
    """Engine whose getters fail with their own exception once the robot dies."""

    dead = False

    @property
    def gun_heat(self) -> float:
        if self.dead:
            raise RuntimeError("robot is dead")
        return 0.0

    @gun_heat.setter
    def gun_heat(self, value: float) -> None:
        pass

    @property
    def energy(self) -> float:
        if self.dead:
            raise RuntimeError("robot is dead")
        return 100.0

    @energy.setter
    def energy(self, value: float) -> None:
        pass


def test_any_failing_getter_becomes_none() -> None:
    sim = _DyingSim()
    sim.dead = True

    state = snapshot(sim)

    assert state["gun_heat"] is None
    assert state["energy"] is None
    assert state["time"] == 0


def test_failing_getters_do_not_stop_the_reports() -> None:
    sim = _DyingSim()

    def on_set_state(count: int) -> None:
        sim.dead = True

    transport = ScriptedTransport(
        [{"name": "ahead", "value": 1}, {"name": "scan"}], on_set_state=on_set_state
    )

    result = TurnScheduler(sim, transport).run()

    assert result.exit_reason == ExitReason.NO_ACTION
    assert result.reports_sent == 4
    assert transport.reports[1].state["gun_heat"] == 0.0
    assert transport.reports[2].state["gun_heat"] is None
    assert transport.reports[3].state["energy"] is None
