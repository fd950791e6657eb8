import re

from rlbridge.bridge.contracts import (
    DeathEvent,
    RoundEndedEvent,
    ScannedRobotEvent,
)
from rlbridge.bridge.errors import TransportError
from rlbridge.bridge.events import EventAccumulator
from rlbridge.bridge.scheduler import ExitReason, TurnScheduler

from tests._support.fakes import (
    FakeBullet,
    FakeSim,
    ScriptedTransport,
    record_from_thread,
)

EXCHANGE = re.compile(r"reset(,action,flush)*(,action)?,flush")


def _scanned(time: int) -> ScannedRobotEvent:
    return ScannedRobotEvent(
        time=time,
        name="sentry",
        bearing=5.0,
        distance=150.0,
        heading=0.0,
        velocity=0.0,
        energy=100.0,
    )


def test_full_episode_reports_each_turn_and_closes() -> None:
    accumulator = EventAccumulator()
    turns: list[str] = []

    def on_call(name: str, value: object) -> None:
        turns.append(name)
        if len(turns) == 1:
            record_from_thread(accumulator.record, _scanned(sim.time))
        if len(turns) == 3:
            record_from_thread(
                accumulator.record,
                RoundEndedEvent(time=sim.time, round=0, turns=3, total_turns=3),
            )

    sim = FakeSim(on_call=on_call, bullet=FakeBullet())
    transport = ScriptedTransport(
        [
            {"name": "ahead", "value": 5},
            {"name": "fire", "value": 3},
            {"name": "ahead", "value": -5},
            {"name": "scan"},
        ]
    )

    result = TurnScheduler(sim, transport, accumulator).run()

    assert result.exit_reason == ExitReason.TERMINAL_EVENT
    assert result.clean is True
    assert result.turns == 3
    assert result.reports_sent == 5
    assert transport.ops == [
        "reset",
        "action",
        "flush",
        "action",
        "flush",
        "action",
        "flush",
        "flush",
    ]
    assert sim.calls == [("ahead", 5.0), ("fire_bullet", 3.0), ("ahead", -5.0)]

    reset, first, second, third, closing = transport.reports
    assert reset.events == {}
    assert reset.state["time"] == 0
    assert list(first.events) == ["ScannedRobotEvent"]
    assert first.state["time"] == 1
    assert list(second.events) == ["BulletFiredEvent"]
    assert second.events["BulletFiredEvent"][0].bullet.power == 3.0
    assert list(third.events) == ["RoundEndedEvent"]
    assert closing.events == {}
    assert closing.state["time"] == 3


def test_no_action_ends_cleanly_with_a_final_report() -> None:
    transport = ScriptedTransport([{"name": "doNothing"}])

    result = TurnScheduler(FakeSim(), transport).run()

    assert result.exit_reason == ExitReason.NO_ACTION
    assert result.clean is True
    assert result.turns == 1
    assert result.reports_sent == 3
    assert transport.ops == ["reset", "action", "flush", "action", "flush"]
    assert EXCHANGE.fullmatch(",".join(transport.ops))


def test_terminal_event_arriving_after_a_drain_is_not_lost() -> None:
    accumulator = EventAccumulator()

    def on_set_state(count: int) -> None:
        # the engine reports death just after the first turn's report left
        if count == 2:
            record_from_thread(accumulator.record, DeathEvent(time=1))

    transport = ScriptedTransport(
        [{"name": "ahead", "value": 10}, {"name": "ahead", "value": 10}],
        on_set_state=on_set_state,
    )

    result = TurnScheduler(FakeSim(), transport, accumulator).run()

    assert result.exit_reason == ExitReason.TERMINAL_EVENT
    assert result.turns == 1
    assert transport.ops == ["reset", "action", "flush", "flush"]
    assert transport.reports[1].events == {}
    assert list(transport.reports[-1].events) == ["DeathEvent"]


def test_unknown_action_still_produces_a_report() -> None:
    sim = FakeSim(bullet=FakeBullet(power=2.0))
    transport = ScriptedTransport(
        [{"name": "levitate", "value": 9}, {"name": "fire", "value": 2}]
    )

    result = TurnScheduler(sim, transport).run()

    assert result.turns == 2
    assert sim.calls == [("fire_bullet", 2.0)]
    assert transport.reports[1].events == {}
    assert list(transport.reports[2].events) == ["BulletFiredEvent"]
    assert EXCHANGE.fullmatch(",".join(transport.ops))


def test_simulation_error_is_suppressed_and_flushed() -> None:
    sim = FakeSim(fail_on={"ahead"})
    transport = ScriptedTransport(
        [{"name": "ahead", "value": 1}, {"name": "scan"}]
    )

    result = TurnScheduler(sim, transport).run()

    assert result.clean is True
    assert result.turns == 2
    assert sim.calls == [("ahead", 1.0), ("scan", None)]
    assert transport.ops.count("flush") == 3


def test_rejected_action_ends_the_episode() -> None:
    sim = FakeSim()
    transport = ScriptedTransport([{"name": "ahead", "value": True}])

    result = TurnScheduler(sim, transport).run()

    assert result.exit_reason == ExitReason.DECODE_ERROR
    assert result.clean is False
    assert result.error is not None
    assert sim.calls == []
    assert transport.ops == ["reset", "action", "flush"]


def test_transport_failure_reading_action() -> None:
    transport = ScriptedTransport(
        [TransportError("server went away", error_code="eof")]
    )

    result = TurnScheduler(FakeSim(), transport).run()

    assert result.exit_reason == ExitReason.TRANSPORT_ERROR
    assert result.clean is False
    assert result.error == "server went away"
    assert transport.ops == ["reset", "action", "flush"]


def test_failed_reset_still_attempts_the_final_report() -> None:
    transport = ScriptedTransport([{"name": "scan"}], fail_reset=True)

    result = TurnScheduler(FakeSim(), transport).run()

    assert result.exit_reason == ExitReason.TRANSPORT_ERROR
    assert result.turns == 0
    assert result.reports_sent == 1
    assert transport.ops == ["reset", "flush"]


def test_undeliverable_reports_make_the_episode_unclean() -> None:
    transport = ScriptedTransport([{"name": "scan"}], fail_set_state=True)

    result = TurnScheduler(FakeSim(), transport).run()

    assert result.exit_reason == ExitReason.TRANSPORT_ERROR
    assert result.clean is False
    assert result.reports_sent == 1
    assert transport.ops == ["reset", "action", "flush", "flush"]


def test_reset_discards_events_from_before_the_episode() -> None:
    accumulator = EventAccumulator()
    accumulator.record(DeathEvent(time=0))
    transport = ScriptedTransport([{"name": "scan"}])

    result = TurnScheduler(FakeSim(), transport, accumulator).run()

    assert result.exit_reason == ExitReason.NO_ACTION
    assert all(report.events == {} for report in transport.reports)
