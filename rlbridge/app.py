"""Application entry for running one bridged episode."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rlbridge.bridge.contracts import ACTION_VOCABULARY_VERSION
from rlbridge.bridge.events import EventAccumulator
from rlbridge.bridge.scheduler import EpisodeResult, TurnScheduler
from rlbridge.bridge.snapshot import STATE_SCHEMA_VERSION
from rlbridge.bridge.transport import (
    DEFAULT_STREAM_HOST,
    DEFAULT_STREAM_PORT,
    HttpTransport,
    StreamTransport,
    Transport,
)
from rlbridge.db.replay_log import RecordingTransport, create_run_folder, write_header
from rlbridge.policy.fake_server import FakePolicyServer
from rlbridge.sim.arena import ArenaSimulation
from rlbridge.sim.base import Simulation

logger = logging.getLogger("rlbridge.app")

DEFAULT_TRANSPORT = "stream"
DEFAULT_HOST = DEFAULT_STREAM_HOST
DEFAULT_HTTP_PORT = 12345
TRANSPORTS = ("stream", "http")


@dataclass(frozen=True)
class BridgeConfig:
    transport: str = DEFAULT_TRANSPORT
    host: str = DEFAULT_HOST
    port: int = DEFAULT_STREAM_PORT
    timeout: float | None = None

    def describe(self) -> dict[str, Any]:
        return {
            "transport": self.transport,
            "host": self.host,
            "port": self.port,
            "timeout": self.timeout,
        }


def resolve_config(
    *,
    transport: str | None = None,
    host: str | None = None,
    port: int | None = None,
    timeout: float | None = None,
) -> BridgeConfig:
    kind = (
        transport or os.getenv("RLBRIDGE_TRANSPORT") or DEFAULT_TRANSPORT
    ).lower()
    if kind not in TRANSPORTS:
        raise ValueError(f"Unknown transport {kind!r}; expected one of {TRANSPORTS}")
    default_port = DEFAULT_HTTP_PORT if kind == "http" else DEFAULT_STREAM_PORT
    if port is None:
        env_port = os.getenv("RLBRIDGE_PORT")
        port = int(env_port) if env_port else default_port
    if timeout is None:
        env_timeout = os.getenv("RLBRIDGE_TIMEOUT")
        timeout = float(env_timeout) if env_timeout else None
    return BridgeConfig(
        transport=kind,
        host=host or os.getenv("RLBRIDGE_HOST") or DEFAULT_HOST,
        port=port,
        timeout=timeout,
    )


def open_transport(config: BridgeConfig) -> Transport:
    if config.transport == "http":
        return HttpTransport(
            f"http://{config.host}:{config.port}", timeout=config.timeout
        )
    return StreamTransport.connect(config.host, config.port, timeout=config.timeout)


def run_episode(
    base_dir: Path,
    *,
    config: BridgeConfig,
    sim: Simulation | None = None,
) -> tuple[Path, EpisodeResult]:
    run_dir, log_path = create_run_folder(base_dir)
    write_header(
        log_path,
        metadata={
            "run_id": run_dir.name,
            "state_schema_version": STATE_SCHEMA_VERSION,
            "action_vocabulary_version": ACTION_VOCABULARY_VERSION,
            **config.describe(),
        },
    )
    logger.info(
        "Running episode %s over %s at %s:%s",
        run_dir.name,
        config.transport,
        config.host,
        config.port,
    )
    transport = open_transport(config)
    arena = sim or ArenaSimulation()
    accumulator = EventAccumulator()
    arena.set_listener(accumulator.record)
    try:
        scheduler = TurnScheduler(
            arena, RecordingTransport(transport, log_path), accumulator
        )
        result = scheduler.run()
    finally:
        arena.set_listener(None)
        transport.close()
        if sim is None:
            arena.close()
    return run_dir, result


def run_demo(
    base_dir: Path,
    *,
    actions: list[dict[str, Any]] | None = None,
) -> tuple[Path, EpisodeResult]:
    """Run the arena against a local scripted policy server."""
    with FakePolicyServer(actions or demo_actions()) as server:
        host, port = server.address
        config = BridgeConfig(transport="stream", host=host, port=port)
        return run_episode(base_dir, config=config)


def demo_actions() -> list[dict[str, Any]]:
    opening = [
        {"name": "setAdjustRadarForGunTurn", "value": True},
        {"name": "turnRadarRight", "value": 360},
        {"name": "back", "value": 100},
        {"name": "ahead", "value": 40},
    ]
    volley = [
        {"name": "fire", "value": 3},
        {"name": "turnRadarRight", "value": 720},
        {"name": "scan"},
    ]
    return opening + volley * 12


def describe_result(result: EpisodeResult) -> str:
    status = "clean" if result.clean else "unclean"
    summary = (
        f"{result.turns} turns, {result.reports_sent} reports, "
        f"{result.exit_reason.value} ({status})"
    )
    if result.error:
        summary += f": {result.error}"
    return summary
