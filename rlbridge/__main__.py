"""Module entry point for `python -m rlbridge`."""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from rlbridge.app import describe_result, resolve_config, run_demo, run_episode
from rlbridge.bridge.errors import TransportError
from rlbridge.db.replay_log import RUN_LOG_NAME
from rlbridge.render.live_tail import tail_trace
from rlbridge.render.replay_reader import read_trace
from rlbridge.render.viewer import render_record

DEFAULT_REPLAY_DIR = Path("replay")
DEFAULT_LOG_LEVEL = "INFO"


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Drive a simulated robot from a remote policy server."
    )
    parser.add_argument(
        "--transport",
        default=None,
        help="Wire transport: stream (line JSON over TCP) or http.",
    )
    parser.add_argument("--host", default=None, help="Policy server host.")
    parser.add_argument("--port", type=int, default=None, help="Policy server port.")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait on the policy server. Omit to wait indefinitely.",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Run against a local scripted policy server.",
    )
    parser.add_argument(
        "--view",
        action="store_true",
        help="Tail an episode trace and render the live viewer.",
    )
    parser.add_argument(
        "--replay",
        type=Path,
        default=None,
        help="Print a saved run folder through the viewer.",
    )
    parser.add_argument(
        "--run-folder",
        type=Path,
        default=None,
        help="Run folder to view (defaults to latest).",
    )
    parser.add_argument(
        "--replay-dir",
        type=Path,
        default=DEFAULT_REPLAY_DIR,
        help="Base directory for episode traces.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (defaults to RLBRIDGE_LOG_LEVEL or INFO).",
    )
    args = parser.parse_args()
    _configure_logging(args.log_level)

    if args.view:
        run_folder = args.run_folder or _latest_run_folder(args.replay_dir)
        if run_folder is None:
            raise SystemExit("No run folder found. Run an episode first.")
        tail_trace(run_folder / RUN_LOG_NAME)
        return

    if args.replay is not None:
        _replay_run(args.replay)
        return

    try:
        if args.demo:
            run_dir, result = run_demo(args.replay_dir)
        else:
            config = resolve_config(
                transport=args.transport,
                host=args.host,
                port=args.port,
                timeout=args.timeout,
            )
            run_dir, result = run_episode(args.replay_dir, config=config)
    except (TransportError, ValueError) as exc:
        raise SystemExit(f"Episode failed: {exc}") from exc

    print(f"Episode finished: {describe_result(result)}")
    print(f"Trace saved to {run_dir}")
    if not result.clean:
        raise SystemExit(1)


def _configure_logging(level: str | None) -> None:
    name = (level or os.getenv("RLBRIDGE_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()
    logging.basicConfig(
        level=name,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)],
    )


def _latest_run_folder(base_dir: Path) -> Path | None:
    if not base_dir.exists():
        return None
    run_dirs = [path for path in base_dir.iterdir() if path.is_dir()]
    if not run_dirs:
        return None
    return sorted(run_dirs)[-1]


def _replay_run(run_folder: Path) -> None:
    console = Console()
    for record in read_trace(run_folder / RUN_LOG_NAME):
        console.print(render_record(record))


if __name__ == "__main__":
    main()
