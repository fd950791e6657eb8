"""Small battle arena for running the bridge without an external engine.

One robot shares a rectangular field with a sentry target that shuffles
back and forth, reversing when it meets a wall or the robot.
Every operation advances time synchronously on the caller's thread, while
events are handed to the listener from a separate delivery thread, the
way a real engine fires callbacks.
"""

from __future__ import annotations

import math
import queue
import threading
from dataclasses import dataclass
from typing import Any

from rlbridge.bridge.contracts import (
    BattleEndedEvent,
    BulletHitEvent,
    BulletMissedEvent,
    BulletSnapshot,
    DeathEvent,
    HitRobotEvent,
    HitWallEvent,
    RobotDeathEvent,
    RoundEndedEvent,
    ScannedRobotEvent,
    WinEvent,
)
from rlbridge.bridge.errors import SimulationError
from rlbridge.sim.base import EventListener

MAX_VELOCITY = 8.0
BODY_TURN_RATE = 10.0
GUN_TURN_RATE = 20.0
RADAR_TURN_RATE = 45.0
SCAN_HALF_ARC = 22.5
HIT_RADIUS = 18.0
MIN_BULLET_POWER = 0.1
MAX_BULLET_POWER = 3.0

_STOP = object()
_TURN_RATES = {"body": BODY_TURN_RATE, "gun": GUN_TURN_RATE, "radar": RADAR_TURN_RATE}


@dataclass
class Bullet:
    owner: str
    power: float
    x: float
    y: float
    heading: float
    velocity: float
    victim: str | None = None
    is_active: bool = True


@dataclass
class Sentry:
    name: str
    x: float
    y: float
    energy: float = 100.0
    heading: float = 90.0
    stride: float = 5.0
    pause: int = 500
    forward: bool = True
    idle: int = 0
    velocity: float = 0.0

    @property
    def alive(self) -> bool:
        return self.energy > 0


class ArenaSimulation:
    def __init__(
        self,
        *,
        name: str = "rlbridge",
        battle_field_width: float = 800.0,
        battle_field_height: float = 600.0,
        start: tuple[float, float] = (400.0, 300.0),
        sentry: tuple[float, float] = (400.0, 500.0),
        sentry_stride: float = 5.0,
        sentry_pause: int = 500,
        round_turns: int = 500,
        num_rounds: int = 1,
    ) -> None:
        self.name = name
        self.battle_field_width = battle_field_width
        self.battle_field_height = battle_field_height
        self.width = 36.0
        self.height = 36.0
        self.gun_cooling_rate = 0.1
        self.num_rounds = num_rounds
        self.num_sentries = 0
        self.sentry_border_size = 100
        self.round_num = 0
        self.time = 0
        self.energy = 100.0
        self.x, self.y = start
        self.heading = 0.0
        self.gun_heading = 0.0
        self.radar_heading = 0.0
        self.gun_heat = 3.0
        self.velocity = 0.0
        self._round_turns = round_turns
        self._sentry = Sentry(
            name="sentry",
            x=sentry[0],
            y=sentry[1],
            stride=sentry_stride,
            pause=sentry_pause,
        )
        self._bullets: list[Bullet] = []
        self._adjust_gun_for_robot_turn = False
        self._adjust_radar_for_robot_turn = False
        self._adjust_radar_for_gun_turn = False
        self._stopped = False
        self._round_over = False
        self._radar_sweep = 0.0
        self._listener: EventListener | None = None
        self._outbox: queue.Queue[Any] = queue.Queue()
        self._delivery = threading.Thread(target=self._deliver_loop, daemon=True)
        self._delivery.start()

    @property
    def others(self) -> int:
        return 1 if self._sentry.alive else 0

    @property
    def sentry(self) -> Sentry:
        return self._sentry

    @property
    def round_over(self) -> bool:
        return self._round_over

    def set_listener(self, listener: EventListener | None) -> None:
        self._listener = listener

    def wait_delivered(self) -> None:
        """Block until every emitted event has reached the listener."""
        self._outbox.join()

    def close(self) -> None:
        self._outbox.put(_STOP)
        self._delivery.join()

    def __enter__(self) -> ArenaSimulation:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def do_nothing(self) -> None:
        self._check_running()
        self._tick()

    def ahead(self, distance: float) -> None:
        self._move(distance)

    def back(self, distance: float) -> None:
        self._move(-distance)

    def turn_left(self, degrees: float) -> None:
        self._turn("body", -degrees)

    def turn_right(self, degrees: float) -> None:
        self._turn("body", degrees)

    def turn_gun_left(self, degrees: float) -> None:
        self._turn("gun", -degrees)

    def turn_gun_right(self, degrees: float) -> None:
        self._turn("gun", degrees)

    def turn_radar_left(self, degrees: float) -> None:
        self._turn("radar", -degrees)

    def turn_radar_right(self, degrees: float) -> None:
        self._turn("radar", degrees)

    def set_adjust_gun_for_robot_turn(self, independent: bool) -> None:
        self._adjust_gun_for_robot_turn = independent

    def set_adjust_radar_for_robot_turn(self, independent: bool) -> None:
        self._adjust_radar_for_robot_turn = independent

    def set_adjust_radar_for_gun_turn(self, independent: bool) -> None:
        self._adjust_radar_for_gun_turn = independent

    def fire_bullet(self, power: float) -> Bullet | None:
        self._check_running()
        power = max(MIN_BULLET_POWER, min(MAX_BULLET_POWER, power))
        bullet = None
        if self.gun_heat <= 0 and self.energy >= power:
            bullet = Bullet(
                owner=self.name,
                power=power,
                x=self.x,
                y=self.y,
                heading=self.gun_heading,
                velocity=20.0 - 3.0 * power,
            )
            self._bullets.append(bullet)
            self.energy -= power
            self.gun_heat = 1.0 + power / 5.0
        self._tick()
        return bullet

    def scan(self) -> None:
        self._check_running()
        self._scan_arc(self.radar_heading - SCAN_HALF_ARC, 2 * SCAN_HALF_ARC)
        self._tick()

    def stop(self, overwrite: bool) -> None:
        self._check_running()
        if overwrite or not self._stopped:
            self._stopped = True
        self.velocity = 0.0
        self._tick()

    def resume(self) -> None:
        self._check_running()
        self._stopped = False
        self._tick()

    def _check_running(self) -> None:
        if self._round_over:
            raise SimulationError("The round is over", error_code="round_over")

    def _move(self, distance: float) -> None:
        self._check_running()
        remaining = distance
        try:
            while abs(remaining) > 1e-9:
                step = max(-MAX_VELOCITY, min(MAX_VELOCITY, remaining))
                self.velocity = step
                blocked = self._advance_body(step)
                remaining = 0.0 if blocked else remaining - step
                self._tick()
        finally:
            self.velocity = 0.0

    def _advance_body(self, step: float) -> bool:
        radians = math.radians(self.heading)
        x = self.x + math.sin(radians) * step
        y = self.y + math.cos(radians) * step
        half = self.width / 2
        clamped_x = min(max(x, half), self.battle_field_width - half)
        clamped_y = min(max(y, half), self.battle_field_height - half)
        sentry = self._sentry
        gap = math.dist((clamped_x, clamped_y), (sentry.x, sentry.y))
        if sentry.alive and gap < self.width:
            self._emit(
                HitRobotEvent(
                    time=self.time,
                    name=sentry.name,
                    bearing=self._bearing_to(sentry.x, sentry.y),
                    energy=sentry.energy,
                    is_my_fault=True,
                )
            )
            return True
        self.x, self.y = clamped_x, clamped_y
        if (clamped_x, clamped_y) != (x, y):
            self._emit(
                HitWallEvent(time=self.time, bearing=_wall_bearing(self.velocity))
            )
            self._damage(max(abs(step) * 0.5 - 1.0, 0.0))
            return True
        return False

    def _turn(self, part: str, degrees: float) -> None:
        self._check_running()
        rate = _TURN_RATES[part]
        remaining = degrees
        while abs(remaining) > 1e-9:
            step = max(-rate, min(rate, remaining))
            self._rotate(part, step)
            remaining -= step
            self._tick()

    def _rotate(self, part: str, step: float) -> None:
        if part == "body":
            self.heading = (self.heading + step) % 360
            if not self._adjust_gun_for_robot_turn:
                self.gun_heading = (self.gun_heading + step) % 360
            if not self._adjust_radar_for_robot_turn:
                self._rotate_radar(step)
        elif part == "gun":
            self.gun_heading = (self.gun_heading + step) % 360
            if not self._adjust_radar_for_gun_turn:
                self._rotate_radar(step)
        else:
            self._rotate_radar(step)

    def _rotate_radar(self, step: float) -> None:
        self.radar_heading = (self.radar_heading + step) % 360
        self._radar_sweep += step

    def _tick(self) -> None:
        start = self.radar_heading - self._radar_sweep
        if self._radar_sweep:
            self._scan_arc(start, self._radar_sweep)
        self._radar_sweep = 0.0
        self.time += 1
        self.gun_heat = max(0.0, self.gun_heat - self.gun_cooling_rate)
        self._move_sentry()
        self._advance_bullets()
        if self.time >= self._round_turns and not self._round_over:
            self._end_round()
        if self._round_over:
            raise SimulationError(
                "The round ended mid-action", error_code="round_over"
            )

    def _scan_arc(self, start: float, sweep: float) -> None:
        sentry = self._sentry
        if not sentry.alive:
            return
        target = _absolute_bearing(self.x, self.y, sentry.x, sentry.y)
        offset = _normalize_bearing(target - start)
        if sweep < 0:
            offset, sweep = -offset, -sweep
        if 0 <= offset <= sweep:
            self._emit(
                ScannedRobotEvent(
                    time=self.time,
                    name=sentry.name,
                    bearing=self._bearing_to(sentry.x, sentry.y),
                    distance=math.dist((self.x, self.y), (sentry.x, sentry.y)),
                    heading=sentry.heading,
                    velocity=sentry.velocity,
                    energy=sentry.energy,
                )
            )

    def _move_sentry(self) -> None:
        """One short stride, then `pause` idle ticks, like a training target."""
        sentry = self._sentry
        sentry.velocity = 0.0
        if not sentry.alive or sentry.stride <= 0:
            return
        if sentry.idle > 0:
            sentry.idle -= 1
            return
        sentry.idle = max(sentry.pause - self.round_num, 0)
        step = sentry.stride if sentry.forward else -sentry.stride
        radians = math.radians(sentry.heading)
        x = sentry.x + math.sin(radians) * step
        y = sentry.y + math.cos(radians) * step
        half = self.width / 2
        inside = (
            half <= x <= self.battle_field_width - half
            and half <= y <= self.battle_field_height - half
        )
        if not inside:
            sentry.forward = not sentry.forward
            return
        if math.dist((x, y), (self.x, self.y)) < self.width:
            sentry.forward = not sentry.forward
            self._emit(
                HitRobotEvent(
                    time=self.time,
                    name=sentry.name,
                    bearing=self._bearing_to(sentry.x, sentry.y),
                    energy=sentry.energy,
                    is_my_fault=False,
                )
            )
            return
        sentry.x, sentry.y = x, y
        sentry.velocity = step

    def _advance_bullets(self) -> None:
        for bullet in list(self._bullets):
            radians = math.radians(bullet.heading)
            bullet.x += math.sin(radians) * bullet.velocity
            bullet.y += math.cos(radians) * bullet.velocity
            sentry = self._sentry
            distance = math.dist((bullet.x, bullet.y), (sentry.x, sentry.y))
            if sentry.alive and distance <= HIT_RADIUS:
                self._bullets.remove(bullet)
                bullet.is_active = False
                bullet.victim = sentry.name
                sentry.energy = max(0.0, sentry.energy - _bullet_damage(bullet.power))
                self.energy += 3.0 * bullet.power
                self._emit(
                    BulletHitEvent(
                        time=self.time,
                        name=sentry.name,
                        energy=sentry.energy,
                        bullet=_bullet_snapshot(bullet),
                    )
                )
                if not sentry.alive:
                    self._emit(RobotDeathEvent(time=self.time, name=sentry.name))
                    self._emit(WinEvent(time=self.time))
                    self._end_round()
            elif not (
                0 <= bullet.x <= self.battle_field_width
                and 0 <= bullet.y <= self.battle_field_height
            ):
                self._bullets.remove(bullet)
                bullet.is_active = False
                self._emit(
                    BulletMissedEvent(time=self.time, bullet=_bullet_snapshot(bullet))
                )

    def _damage(self, amount: float) -> None:
        self.energy = max(0.0, self.energy - amount)
        if self.energy <= 0 and not self._round_over:
            self._emit(DeathEvent(time=self.time))
            self._end_round()

    def _end_round(self) -> None:
        self._round_over = True
        self._emit(
            RoundEndedEvent(
                time=self.time,
                round=self.round_num,
                turns=self.time,
                total_turns=self.time,
            )
        )
        if self.round_num + 1 >= self.num_rounds:
            self._emit(BattleEndedEvent(time=self.time))

    def _bearing_to(self, x: float, y: float) -> float:
        absolute = _absolute_bearing(self.x, self.y, x, y)
        return _normalize_bearing(absolute - self.heading)

    def _emit(self, event: Any) -> None:
        self._outbox.put(event)

    def _deliver_loop(self) -> None:
        while True:
            event = self._outbox.get()
            try:
                if event is _STOP:
                    return
                listener = self._listener
                if listener is not None:
                    listener(event)
            finally:
                self._outbox.task_done()


def _absolute_bearing(x1: float, y1: float, x2: float, y2: float) -> float:
    return math.degrees(math.atan2(x2 - x1, y2 - y1)) % 360


def _normalize_bearing(angle: float) -> float:
    return (angle + 180.0) % 360.0 - 180.0


def _wall_bearing(velocity: float) -> float:
    return 0.0 if velocity >= 0 else 180.0


def _bullet_damage(power: float) -> float:
    damage = 4.0 * power
    if power > 1.0:
        damage += 2.0 * (power - 1.0)
    return damage


def _bullet_snapshot(bullet: Bullet) -> BulletSnapshot:
    return BulletSnapshot.model_validate(bullet, from_attributes=True)
