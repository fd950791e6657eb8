"""Simulation interface the bridge drives."""

from __future__ import annotations

from typing import Any, Callable, Protocol

EventListener = Callable[[Any], None]


class BulletHandle(Protocol):
    owner: str
    victim: str | None
    power: float
    x: float
    y: float
    heading: float
    velocity: float
    is_active: bool


class Simulation(Protocol):
    """A live robot inside a running battle.

    Readings named in `rlbridge.bridge.snapshot.STATE_FIELDS` are exposed as
    attributes. Operations block until the engine has executed them and may
    raise `SimulationError` once the robot is destroyed. Events are delivered
    to the listener from the engine's own thread.
    """

    time: int

    def set_listener(self, listener: EventListener | None) -> None: ...

    def do_nothing(self) -> None: ...

    def ahead(self, distance: float) -> None: ...

    def back(self, distance: float) -> None: ...

    def turn_left(self, degrees: float) -> None: ...

    def turn_right(self, degrees: float) -> None: ...

    def turn_radar_left(self, degrees: float) -> None: ...

    def turn_radar_right(self, degrees: float) -> None: ...

    def turn_gun_left(self, degrees: float) -> None: ...

    def turn_gun_right(self, degrees: float) -> None: ...

    def set_adjust_radar_for_robot_turn(self, independent: bool) -> None: ...

    def set_adjust_radar_for_gun_turn(self, independent: bool) -> None: ...

    def set_adjust_gun_for_robot_turn(self, independent: bool) -> None: ...

    def fire_bullet(self, power: float) -> BulletHandle | None: ...

    def scan(self) -> None: ...

    def stop(self, overwrite: bool) -> None: ...

    def resume(self) -> None: ...
