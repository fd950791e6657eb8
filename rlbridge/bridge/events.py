"""Thread-safe accumulation of simulation events between two flushes.

The simulation fires its callbacks on its own thread while the turn
scheduler composes and sends messages. Every access to the buffer goes
through one lock so that a `record` lands wholly before or wholly after a
`drain`.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from rlbridge.bridge.contracts import TERMINAL_KINDS, EventKind, event_kind

EventBuffer = dict[EventKind, list[Any]]


@dataclass(frozen=True)
class Drained:
    events: EventBuffer = field(default_factory=dict)
    terminal: bool = False

    def count(self) -> int:
        return sum(len(items) for items in self.events.values())


class EventAccumulator:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buffer: EventBuffer = {}
        self._terminal = False

    def record(self, event: Any) -> None:
        kind = event_kind(event)
        with self._lock:
            self._buffer.setdefault(kind, []).append(event)
            if kind in TERMINAL_KINDS:
                self._terminal = True

    def drain(self) -> Drained:
        with self._lock:
            buffer, self._buffer = self._buffer, {}
            terminal, self._terminal = self._terminal, False
        return Drained(events=buffer, terminal=terminal)

    def clear(self) -> None:
        with self._lock:
            self._buffer = {}
            self._terminal = False

    def terminal_pending(self) -> bool:
        with self._lock:
            return self._terminal


def as_wire(buffer: EventBuffer) -> dict[str, list[Any]]:
    """Key a drained buffer by wire tag; empty kinds are left out."""
    return {kind.value: list(items) for kind, items in buffer.items() if items}
