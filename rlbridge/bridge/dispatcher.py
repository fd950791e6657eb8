"""Map a decoded action onto one simulation operation."""

from __future__ import annotations

import logging
from typing import Any, Callable

from rlbridge.bridge.contracts import (
    Action,
    ActionName,
    BulletFiredEvent,
    BulletSnapshot,
)
from rlbridge.bridge.snapshot import read_reading

logger = logging.getLogger("rlbridge.bridge.dispatcher")

Operation = Callable[[Any, Any], Any]

OPERATIONS: dict[ActionName, Operation] = {
    ActionName.DO_NOTHING: lambda sim, _: sim.do_nothing(),
    ActionName.AHEAD: lambda sim, value: sim.ahead(value),
    ActionName.BACK: lambda sim, value: sim.back(value),
    ActionName.TURN_LEFT: lambda sim, value: sim.turn_left(value),
    ActionName.TURN_RIGHT: lambda sim, value: sim.turn_right(value),
    ActionName.TURN_RADAR_LEFT: lambda sim, value: sim.turn_radar_left(value),
    ActionName.TURN_RADAR_RIGHT: lambda sim, value: sim.turn_radar_right(value),
    ActionName.TURN_GUN_LEFT: lambda sim, value: sim.turn_gun_left(value),
    ActionName.TURN_GUN_RIGHT: lambda sim, value: sim.turn_gun_right(value),
    ActionName.ADJUST_RADAR_FOR_ROBOT_TURN: (
        lambda sim, value: sim.set_adjust_radar_for_robot_turn(value)
    ),
    ActionName.ADJUST_RADAR_FOR_GUN_TURN: (
        lambda sim, value: sim.set_adjust_radar_for_gun_turn(value)
    ),
    ActionName.ADJUST_GUN_FOR_ROBOT_TURN: (
        lambda sim, value: sim.set_adjust_gun_for_robot_turn(value)
    ),
    ActionName.FIRE: lambda sim, value: sim.fire_bullet(value),
    ActionName.SCAN: lambda sim, _: sim.scan(),
    ActionName.STOP: lambda sim, value: sim.stop(value),
    ActionName.RESUME: lambda sim, _: sim.resume(),
}


def dispatch(action: Action, sim: Any) -> BulletFiredEvent | None:
    """Run `action` against `sim`.

    Unknown action names are ignored. Returns a fired event when `fire`
    produced a bullet so the caller can record it with the other events.
    Errors raised by the simulation propagate.
    """
    name = action.known_name
    if name is None:
        logger.debug("Ignoring unknown action %r", action.name)
        return None
    result = OPERATIONS[name](sim, action.value)
    if name == ActionName.FIRE and result is not None:
        return BulletFiredEvent(
            time=int(read_reading(sim, "time") or 0),
            bullet=BulletSnapshot.model_validate(result, from_attributes=True),
        )
    return None
