"""Episode trace logging helpers (JSONL)."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from rlbridge.bridge.contracts import Action, StateReport

SCHEMA_VERSION = 1
RUN_LOG_NAME = "trace.jsonl"


class HeaderRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["header"] = "header"
    schema_version: int = SCHEMA_VERSION
    metadata: dict[str, Any] = Field(default_factory=dict)


class ReportRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["report"] = "report"
    schema_version: int = SCHEMA_VERSION
    step: Literal["reset", "state"]
    report: StateReport


class ActionRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["action"] = "action"
    schema_version: int = SCHEMA_VERSION
    action: Action | None = None


TraceRecord = Annotated[
    Union[HeaderRecord, ReportRecord, ActionRecord], Field(discriminator="type")
]


def create_run_folder(
    base_dir: Path, *, timestamp: str | None = None
) -> tuple[Path, Path]:
    run_id = timestamp or _format_timestamp(datetime.now(timezone.utc))
    run_dir = base_dir / run_id
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir, run_dir / RUN_LOG_NAME


def write_header(path: Path, metadata: dict[str, Any]) -> None:
    _append_record(path, HeaderRecord(metadata=metadata))


def append_report(
    path: Path, *, step: Literal["reset", "state"], report: StateReport
) -> None:
    _append_record(path, ReportRecord(step=step, report=report))


def append_action(path: Path, action: Action | None) -> None:
    _append_record(path, ActionRecord(action=action))


def _append_record(path: Path, record: BaseModel) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(record.model_dump(mode="json")))
        handle.write("\n")


def _format_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H-%M-%SZ")


class RecordingTransport:
    """Wrap a transport and append every exchanged message to a trace log."""

    def __init__(self, inner: Any, log_path: Path) -> None:
        self._inner = inner
        self._log_path = log_path

    def reset(self, report: StateReport) -> None:
        self._inner.reset(report)
        append_report(self._log_path, step="reset", report=report)

    def get_action(self) -> Action | None:
        action = self._inner.get_action()
        append_action(self._log_path, action)
        return action

    def set_state(self, report: StateReport) -> None:
        self._inner.set_state(report)
        append_report(self._log_path, step="state", report=report)

    def close(self) -> None:
        self._inner.close()
