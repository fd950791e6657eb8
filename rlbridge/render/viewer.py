"""Rich viewer rendering for episode trace records."""

from __future__ import annotations

from rich.columns import Columns
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from rlbridge.bridge.contracts import StateReport
from rlbridge.db.replay_log import ActionRecord, HeaderRecord, ReportRecord

STATE_SUMMARY_FIELDS = (
    "time",
    "energy",
    "x",
    "y",
    "heading",
    "gun_heading",
    "radar_heading",
    "gun_heat",
    "velocity",
    "others",
)


def render_record(
    record: HeaderRecord | ReportRecord | ActionRecord, *, max_events: int = 8
) -> RenderableType:
    if isinstance(record, HeaderRecord):
        return _render_header(record)
    if isinstance(record, ActionRecord):
        return _render_action(record)
    return render_report(record.report, step=record.step, max_events=max_events)


def render_report(
    report: StateReport, *, step: str = "state", max_events: int = 8
) -> RenderableType:
    title = "Reset" if step == "reset" else "State"
    header = Text(f"{title} @ time {report.state.get('time')}", style="bold")
    layout = Columns(
        [
            Panel(_render_state(report), title="Robot"),
            Panel(_render_events(report, max_events=max_events), title="Events"),
        ]
    )
    return Group(header, layout)


def _render_header(record: HeaderRecord) -> RenderableType:
    table = Table(show_header=False)
    table.add_column("Field")
    table.add_column("Value")
    for key, value in record.metadata.items():
        table.add_row(key, str(value))
    return Panel(table, title="Episode")


def _render_action(record: ActionRecord) -> RenderableType:
    action = record.action
    if action is None:
        return Text("Action: none (episode over)", style="dim")
    if action.value is None:
        return Text(f"Action: {action.name}", style="cyan")
    return Text(f"Action: {action.name}({action.value})", style="cyan")


def _render_state(report: StateReport) -> RenderableType:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Reading")
    table.add_column("Value")
    for name in STATE_SUMMARY_FIELDS:
        table.add_row(name, _format_value(report.state.get(name)))
    return table


def _render_events(report: StateReport, *, max_events: int) -> RenderableType:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Kind")
    table.add_column("Detail")

    events = [event for items in report.events.values() for event in items]
    for event in events[-max_events:]:
        table.add_row(event.kind, _format_payload(event.model_dump()))
    if not events:
        table.add_row("-", "None")
    return table


def _format_value(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.1f}"
    return str(value)


def _format_payload(payload: dict) -> str:
    fields = {
        key: value
        for key, value in payload.items()
        if key not in ("kind", "bullet", "hit_bullet")
    }
    if not fields:
        return "-"
    return ", ".join(f"{key}={_format_value(value)}" for key, value in fields.items())
