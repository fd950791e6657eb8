"""Turn scheduler: the episode control loop.

The loop runs reset, then (await action, execute, flush) until the episode
ends, then one last unconditional flush. A terminal event can reach the
accumulator just after a drain has been sent; the closing flush carries it
so the policy server is never left waiting for a report.

No timeout is applied here. If the policy server never answers, the
scheduler blocks in the transport; bound it with the transport's timeout.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator

from rlbridge.bridge.contracts import Action, StateReport
from rlbridge.bridge.dispatcher import dispatch
from rlbridge.bridge.errors import ActionDecodeError, BridgeError, TransportError
from rlbridge.bridge.events import Drained, EventAccumulator, as_wire
from rlbridge.bridge.snapshot import snapshot
from rlbridge.bridge.transport import Transport

logger = logging.getLogger("rlbridge.bridge.scheduler")


class Phase(str, Enum):
    RESETTING = "resetting"
    AWAITING_ACTION = "awaiting_action"
    EXECUTING = "executing"
    FLUSHING = "flushing"
    TERMINATED = "terminated"


class ExitReason(str, Enum):
    TERMINAL_EVENT = "terminal_event"
    NO_ACTION = "no_action"
    TRANSPORT_ERROR = "transport_error"
    DECODE_ERROR = "decode_error"


@dataclass
class EpisodeState:
    phase: Phase = Phase.RESETTING
    turn: int = 0
    reports_sent: int = 0
    last_action: Action | None = None
    exit_reason: ExitReason | None = None
    error: BridgeError | None = None

    def terminate(
        self, reason: ExitReason, error: BridgeError | None = None
    ) -> None:
        self.phase = Phase.TERMINATED
        self.exit_reason = reason
        self.error = error


@dataclass(frozen=True)
class EpisodeResult:
    exit_reason: ExitReason
    turns: int
    reports_sent: int
    clean: bool
    error: str | None = None


class TurnScheduler:
    def __init__(
        self,
        sim: Any,
        transport: Transport,
        accumulator: EventAccumulator | None = None,
    ) -> None:
        self._sim = sim
        self._transport = transport
        self._accumulator = accumulator or EventAccumulator()

    @property
    def accumulator(self) -> EventAccumulator:
        return self._accumulator

    def run(self) -> EpisodeResult:
        episode = EpisodeState()
        self._reset(episode)
        while episode.phase != Phase.TERMINATED:
            action = self._await_action(episode)
            if action is None:
                break
            with self._flush_after(episode):
                self._execute(action)
        return self._finish(episode)

    def _reset(self, episode: EpisodeState) -> None:
        self._accumulator.clear()
        report = StateReport(state=snapshot(self._sim))
        try:
            self._transport.reset(report)
        except TransportError as exc:
            logger.error("Reset failed: %s", exc)
            episode.terminate(ExitReason.TRANSPORT_ERROR, exc)
            return
        episode.reports_sent += 1
        episode.phase = Phase.AWAITING_ACTION
        logger.info("Episode started")

    def _await_action(self, episode: EpisodeState) -> Action | None:
        try:
            action = self._transport.get_action()
        except ActionDecodeError as exc:
            logger.error("Rejected action from policy server: %s", exc)
            episode.terminate(ExitReason.DECODE_ERROR, exc)
            return None
        except TransportError as exc:
            logger.error("Getting action failed: %s", exc)
            episode.terminate(ExitReason.TRANSPORT_ERROR, exc)
            return None
        if action is None:
            logger.info("Policy server returned no action")
            episode.terminate(ExitReason.NO_ACTION)
            return None
        episode.turn += 1
        episode.last_action = action
        episode.phase = Phase.EXECUTING
        logger.debug("Turn %d: %s(%r)", episode.turn, action.name, action.value)
        return action

    def _execute(self, action: Action) -> None:
        fired = dispatch(action, self._sim)
        if fired is not None:
            self._accumulator.record(fired)

    @contextmanager
    def _flush_after(self, episode: EpisodeState) -> Iterator[None]:
        """Always flush once the wrapped dispatch returns or raises.

        The policy server blocks until it receives the report that follows
        its action, so simulation errors are logged and suppressed here.
        """
        try:
            yield
        except Exception:
            logger.warning(
                "Action %s failed in the simulation",
                episode.last_action.name if episode.last_action else None,
                exc_info=True,
            )
        finally:
            self._flush(episode)

    def _flush(self, episode: EpisodeState) -> None:
        episode.phase = Phase.FLUSHING
        report, drained = self._build_report()
        try:
            self._transport.set_state(report)
        except TransportError as exc:
            logger.error("Sending state failed: %s", exc)
            episode.terminate(ExitReason.TRANSPORT_ERROR, exc)
            return
        episode.reports_sent += 1
        logger.debug(
            "Turn %d: sent state with %d events", episode.turn, drained.count()
        )
        if drained.terminal or self._accumulator.terminal_pending():
            episode.terminate(ExitReason.TERMINAL_EVENT)
        else:
            episode.phase = Phase.AWAITING_ACTION

    def _finish(self, episode: EpisodeState) -> EpisodeResult:
        clean = episode.exit_reason in (
            ExitReason.TERMINAL_EVENT,
            ExitReason.NO_ACTION,
        )
        report, _ = self._build_report()
        try:
            self._transport.set_state(report)
            episode.reports_sent += 1
        except TransportError as exc:
            logger.warning("Final state could not be delivered: %s", exc)
            clean = False
        result = EpisodeResult(
            exit_reason=episode.exit_reason or ExitReason.NO_ACTION,
            turns=episode.turn,
            reports_sent=episode.reports_sent,
            clean=clean,
            error=str(episode.error) if episode.error else None,
        )
        logger.info(
            "Episode ended after %d turns (%s)", result.turns, result.exit_reason.value
        )
        return result

    def _build_report(self) -> tuple[StateReport, Drained]:
        state = snapshot(self._sim)
        drained = self._accumulator.drain()
        return StateReport(state=state, events=as_wire(drained.events)), drained
