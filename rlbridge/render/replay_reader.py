"""Read episode traces and yield validated records."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator

from pydantic import TypeAdapter, ValidationError

from rlbridge.db.replay_log import TraceRecord

_RECORD_ADAPTER: TypeAdapter[TraceRecord] = TypeAdapter(TraceRecord)


def read_trace(path: Path) -> Iterator[TraceRecord]:
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            record = parse_record(line)
            if record is not None:
                yield record


def parse_record(line: str) -> TraceRecord | None:
    try:
        raw = json.loads(line)
    except json.JSONDecodeError:
        return None
    try:
        return _RECORD_ADAPTER.validate_python(raw)
    except ValidationError:
        return None
