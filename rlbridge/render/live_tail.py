"""Follow a running episode's trace in a Textual app."""

from __future__ import annotations

import threading
import time
from pathlib import Path

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.widgets import Footer, Static

from rlbridge.db.replay_log import ActionRecord, HeaderRecord, ReportRecord
from rlbridge.render.replay_reader import parse_record
from rlbridge.render.viewer import render_record


class TraceFollower:
    """Turn trace lines into frames: the latest action above its report."""

    def __init__(self) -> None:
        self.run_id: str | None = None
        self.reports = 0
        self._last_action: ActionRecord | None = None

    def feed(self, line: str) -> RenderableType | None:
        record = parse_record(line)
        if isinstance(record, HeaderRecord):
            self.run_id = record.metadata.get("run_id")
            return None
        if isinstance(record, ActionRecord):
            self._last_action = record
            return None
        if not isinstance(record, ReportRecord):
            return None
        self.reports += 1
        if record.step == "reset" or self._last_action is None:
            return render_record(record)
        return Group(render_record(self._last_action), render_record(record))

    def status(self) -> str:
        return f"run {self.run_id or '?'} | {self.reports} reports"


class TailApp(App):
    CSS = """
    #frame {
        height: 1fr;
    }
    #status {
        height: 1;
        background: $boost;
    }
    """
    BINDINGS = [("q", "quit", "Quit")]

    def __init__(self, path: Path, *, poll_interval: float = 0.2) -> None:
        super().__init__()
        self.title = "rlbridge tail"
        self._path = path
        self._poll_interval = poll_interval
        self._follower = TraceFollower()
        self._stop_event = threading.Event()

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(
                Panel(Text("Waiting for the first report..."), title="Live Episode"),
                id="frame",
            )
            yield Static(self._follower.status(), id="status")
        yield Footer()

    def on_mount(self) -> None:
        threading.Thread(target=self._follow_loop, daemon=True).start()

    def on_unmount(self) -> None:
        self._stop_event.set()

    def _follow_loop(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.touch(exist_ok=True)
        # replay from the start so the opening reset is shown too
        pending = ""
        with self._path.open("r", encoding="utf-8") as handle:
            while not self._stop_event.is_set():
                pending += handle.readline()
                if not pending.endswith("\n"):
                    time.sleep(self._poll_interval)
                    continue
                line, pending = pending, ""
                frame = self._follower.feed(line)
                if frame is not None:
                    self.call_from_thread(self._show, frame)

    def _show(self, frame: RenderableType) -> None:
        self.query_one("#frame", Static).update(frame)
        self.query_one("#status", Static).update(self._follower.status())


def tail_trace(path: Path, *, poll_interval: float = 0.2) -> None:
    TailApp(path, poll_interval=poll_interval).run()
