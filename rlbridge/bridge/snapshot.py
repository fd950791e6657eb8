"""State snapshot: read the fixed set of robot readings from a simulation."""

from __future__ import annotations

import logging
from typing import Any

from rlbridge.bridge.contracts import StateValue

logger = logging.getLogger("rlbridge.bridge.snapshot")

STATE_SCHEMA_VERSION = 1

STATE_FIELDS: tuple[str, ...] = (
    "battle_field_height",
    "battle_field_width",
    "energy",
    "gun_cooling_rate",
    "gun_heading",
    "gun_heat",
    "heading",
    "height",
    "num_rounds",
    "num_sentries",
    "others",
    "radar_heading",
    "round_num",
    "sentry_border_size",
    "time",
    "velocity",
    "width",
    "x",
    "y",
)


def snapshot(sim: Any) -> dict[str, StateValue]:
    """Return every field in STATE_FIELDS, using None for unavailable readings."""
    return {name: read_reading(sim, name) for name in STATE_FIELDS}


def read_reading(sim: Any, name: str) -> StateValue:
    """Read one value; a getter that fails yields None, never an error."""
    try:
        reading = getattr(sim, name, None)
        if callable(reading):
            reading = reading()
    except Exception as exc:
        logger.debug("Reading %s unavailable: %r", name, exc)
        return None
    if reading is None or isinstance(reading, (bool, int, float)):
        return reading
    return None
