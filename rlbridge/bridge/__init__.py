"""Synchronization bridge between a live robot and a remote policy server."""

from rlbridge.bridge.contracts import (
    ACTION_VALUE_SHAPES,
    ACTION_VOCABULARY_VERSION,
    EVENT_MODELS,
    TERMINAL_KINDS,
    Action,
    ActionName,
    EventKind,
    StateReport,
    decode_action,
)
from rlbridge.bridge.dispatcher import dispatch
from rlbridge.bridge.errors import (
    ActionDecodeError,
    BridgeError,
    SimulationError,
    TransportError,
)
from rlbridge.bridge.events import Drained, EventAccumulator, as_wire
from rlbridge.bridge.scheduler import EpisodeResult, ExitReason, TurnScheduler
from rlbridge.bridge.snapshot import STATE_FIELDS, snapshot
from rlbridge.bridge.transport import HttpTransport, StreamTransport, Transport

__all__ = [
    "ACTION_VALUE_SHAPES",
    "ACTION_VOCABULARY_VERSION",
    "Action",
    "ActionDecodeError",
    "ActionName",
    "BridgeError",
    "Drained",
    "EVENT_MODELS",
    "EpisodeResult",
    "EventAccumulator",
    "EventKind",
    "ExitReason",
    "HttpTransport",
    "STATE_FIELDS",
    "SimulationError",
    "StateReport",
    "StreamTransport",
    "TERMINAL_KINDS",
    "Transport",
    "TransportError",
    "TurnScheduler",
    "as_wire",
    "decode_action",
    "dispatch",
    "snapshot",
]
