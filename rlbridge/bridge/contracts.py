"""Wire contracts: events, actions and state reports."""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)

from rlbridge.bridge.errors import ActionDecodeError

ACTION_VOCABULARY_VERSION = 1

StateValue = Union[bool, int, float, None]


class EventKind(str, Enum):
    HIT_WALL = "HitWallEvent"
    HIT_ROBOT = "HitRobotEvent"
    HIT_BY_BULLET = "HitByBulletEvent"
    BULLET_HIT = "BulletHitEvent"
    BULLET_HIT_BULLET = "BulletHitBulletEvent"
    BULLET_MISSED = "BulletMissedEvent"
    BULLET_FIRED = "BulletFiredEvent"
    ROBOT_DEATH = "RobotDeathEvent"
    DEATH = "DeathEvent"
    WIN = "WinEvent"
    ROUND_ENDED = "RoundEndedEvent"
    BATTLE_ENDED = "BattleEndedEvent"
    SCANNED_ROBOT = "ScannedRobotEvent"


TERMINAL_KINDS = frozenset(
    {
        EventKind.DEATH,
        EventKind.WIN,
        EventKind.ROUND_ENDED,
        EventKind.BATTLE_ENDED,
    }
)


class BulletSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    owner: str
    victim: str | None = None
    power: float
    x: float
    y: float
    heading: float
    velocity: float
    is_active: bool


class _EventBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    time: int


class HitWallEvent(_EventBase):
    kind: Literal["HitWallEvent"] = "HitWallEvent"
    bearing: float


class HitRobotEvent(_EventBase):
    kind: Literal["HitRobotEvent"] = "HitRobotEvent"
    name: str
    bearing: float
    energy: float
    is_my_fault: bool


class HitByBulletEvent(_EventBase):
    kind: Literal["HitByBulletEvent"] = "HitByBulletEvent"
    name: str
    bearing: float
    power: float
    damage: float


class BulletHitEvent(_EventBase):
    kind: Literal["BulletHitEvent"] = "BulletHitEvent"
    name: str
    energy: float
    bullet: BulletSnapshot


class BulletHitBulletEvent(_EventBase):
    kind: Literal["BulletHitBulletEvent"] = "BulletHitBulletEvent"
    bullet: BulletSnapshot
    hit_bullet: BulletSnapshot


class BulletMissedEvent(_EventBase):
    kind: Literal["BulletMissedEvent"] = "BulletMissedEvent"
    bullet: BulletSnapshot


class BulletFiredEvent(_EventBase):
    kind: Literal["BulletFiredEvent"] = "BulletFiredEvent"
    bullet: BulletSnapshot


class RobotDeathEvent(_EventBase):
    kind: Literal["RobotDeathEvent"] = "RobotDeathEvent"
    name: str


class DeathEvent(_EventBase):
    kind: Literal["DeathEvent"] = "DeathEvent"


class WinEvent(_EventBase):
    kind: Literal["WinEvent"] = "WinEvent"


class RoundEndedEvent(_EventBase):
    kind: Literal["RoundEndedEvent"] = "RoundEndedEvent"
    round: int
    turns: int
    total_turns: int


class BattleEndedEvent(_EventBase):
    kind: Literal["BattleEndedEvent"] = "BattleEndedEvent"
    aborted: bool = False


class ScannedRobotEvent(_EventBase):
    kind: Literal["ScannedRobotEvent"] = "ScannedRobotEvent"
    name: str
    bearing: float
    distance: float
    heading: float
    velocity: float
    energy: float


EVENT_MODELS: dict[EventKind, type[_EventBase]] = {
    EventKind.HIT_WALL: HitWallEvent,
    EventKind.HIT_ROBOT: HitRobotEvent,
    EventKind.HIT_BY_BULLET: HitByBulletEvent,
    EventKind.BULLET_HIT: BulletHitEvent,
    EventKind.BULLET_HIT_BULLET: BulletHitBulletEvent,
    EventKind.BULLET_MISSED: BulletMissedEvent,
    EventKind.BULLET_FIRED: BulletFiredEvent,
    EventKind.ROBOT_DEATH: RobotDeathEvent,
    EventKind.DEATH: DeathEvent,
    EventKind.WIN: WinEvent,
    EventKind.ROUND_ENDED: RoundEndedEvent,
    EventKind.BATTLE_ENDED: BattleEndedEvent,
    EventKind.SCANNED_ROBOT: ScannedRobotEvent,
}

Event = Annotated[
    Union[
        HitWallEvent,
        HitRobotEvent,
        HitByBulletEvent,
        BulletHitEvent,
        BulletHitBulletEvent,
        BulletMissedEvent,
        BulletFiredEvent,
        RobotDeathEvent,
        DeathEvent,
        WinEvent,
        RoundEndedEvent,
        BattleEndedEvent,
        ScannedRobotEvent,
    ],
    Field(discriminator="kind"),
]


def event_kind(event: _EventBase) -> EventKind:
    return EventKind(getattr(event, "kind"))


class StateReport(BaseModel):
    """One outgoing message: a full state snapshot plus drained events."""

    model_config = ConfigDict(extra="forbid")

    state: dict[str, StateValue]
    events: dict[str, list[Event]] = Field(default_factory=dict)

    def to_json(self) -> str:
        return self.model_dump_json()

    def event_count(self) -> int:
        return sum(len(items) for items in self.events.values())


class ActionName(str, Enum):
    DO_NOTHING = "doNothing"
    AHEAD = "ahead"
    BACK = "back"
    TURN_LEFT = "turnLeft"
    TURN_RIGHT = "turnRight"
    TURN_RADAR_LEFT = "turnRadarLeft"
    TURN_RADAR_RIGHT = "turnRadarRight"
    TURN_GUN_LEFT = "turnGunLeft"
    TURN_GUN_RIGHT = "turnGunRight"
    ADJUST_RADAR_FOR_ROBOT_TURN = "setAdjustRadarForRobotTurn"
    ADJUST_RADAR_FOR_GUN_TURN = "setAdjustRadarForGunTurn"
    ADJUST_GUN_FOR_ROBOT_TURN = "setAdjustGunForRobotTurn"
    FIRE = "fire"
    SCAN = "scan"
    STOP = "stop"
    RESUME = "resume"


class ValueShape(str, Enum):
    NONE = "none"
    NUMBER = "number"
    FLAG = "flag"


ACTION_VALUE_SHAPES: dict[ActionName, ValueShape] = {
    ActionName.DO_NOTHING: ValueShape.NONE,
    ActionName.AHEAD: ValueShape.NUMBER,
    ActionName.BACK: ValueShape.NUMBER,
    ActionName.TURN_LEFT: ValueShape.NUMBER,
    ActionName.TURN_RIGHT: ValueShape.NUMBER,
    ActionName.TURN_RADAR_LEFT: ValueShape.NUMBER,
    ActionName.TURN_RADAR_RIGHT: ValueShape.NUMBER,
    ActionName.TURN_GUN_LEFT: ValueShape.NUMBER,
    ActionName.TURN_GUN_RIGHT: ValueShape.NUMBER,
    ActionName.ADJUST_RADAR_FOR_ROBOT_TURN: ValueShape.FLAG,
    ActionName.ADJUST_RADAR_FOR_GUN_TURN: ValueShape.FLAG,
    ActionName.ADJUST_GUN_FOR_ROBOT_TURN: ValueShape.FLAG,
    ActionName.FIRE: ValueShape.NUMBER,
    ActionName.SCAN: ValueShape.NONE,
    ActionName.STOP: ValueShape.FLAG,
    ActionName.RESUME: ValueShape.NONE,
}


class Action(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str
    value: bool | float | None = None

    @model_validator(mode="before")
    @classmethod
    def validate_value_shape(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        name = data.get("name")
        if not isinstance(name, str):
            return data
        try:
            shape = ACTION_VALUE_SHAPES[ActionName(name)]
        except ValueError:
            # unknown names are never dispatched; their value is not kept
            return {**data, "value": None}
        value = data.get("value")
        if shape == ValueShape.NONE:
            return {**data, "value": None}
        if value is None:
            raise ValueError(f"{name} requires a {shape.value} value")
        if shape == ValueShape.NUMBER:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} requires a number, got {value!r}")
            return {**data, "value": float(value)}
        if not isinstance(value, bool):
            raise ValueError(f"{name} requires a boolean, got {value!r}")
        return data

    @property
    def known_name(self) -> ActionName | None:
        try:
            return ActionName(self.name)
        except ValueError:
            return None


def decode_action(raw: Any) -> Action | None:
    """Validate an action mapping; `None` means the server sent no action."""
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ActionDecodeError(
            f"action must be an object, got {type(raw).__name__}",
            error_code="action_not_object",
        )
    try:
        return Action.model_validate(raw)
    except ValidationError as exc:
        raise ActionDecodeError(
            f"invalid action: {exc.errors()[0].get('msg', exc)}",
            error_code="action_invalid",
        ) from exc


def parse_action_line(line: str) -> Action | None:
    """Decode one stream line holding the bare action object."""
    return decode_action(_load_json(line))


def parse_action_response(body: str) -> Action | None:
    """Decode an HTTP `get-action` body of the form `{"action": {...}}`."""
    payload = _load_json(body)
    if not isinstance(payload, dict) or "action" not in payload:
        raise ActionDecodeError(
            "response has no 'action' field", error_code="action_missing"
        )
    return decode_action(payload["action"])


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ActionDecodeError(
            f"action message is not JSON: {exc.msg}", error_code="action_not_json"
        ) from exc
