"""Simulation interface and the bundled demo arena."""

from rlbridge.sim.arena import ArenaSimulation, Bullet, Sentry
from rlbridge.sim.base import BulletHandle, EventListener, Simulation

__all__ = [
    "ArenaSimulation",
    "Bullet",
    "BulletHandle",
    "EventListener",
    "Sentry",
    "Simulation",
]
