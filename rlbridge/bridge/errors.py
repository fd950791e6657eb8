"""Error types raised across the bridge."""

from __future__ import annotations


class BridgeError(RuntimeError):
    def __init__(self, message: str, *, error_code: str) -> None:
        super().__init__(message)
        self.error_code = error_code


class TransportError(BridgeError):
    """The policy server could not be reached or the connection was lost."""


class ActionDecodeError(BridgeError):
    """An incoming action message was malformed or had the wrong value shape."""


class SimulationError(BridgeError):
    """The simulation refused an operation (e.g. the robot is already destroyed)."""
