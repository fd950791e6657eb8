"""Scripted line-protocol policy server for tests and demos."""

from __future__ import annotations

import json
import logging
import socketserver
import threading
from typing import Any, Iterable

logger = logging.getLogger("rlbridge.policy.fake_server")


class FakePolicyServer:
    """Answer each state report with the next scripted action.

    Speaks the stream protocol: the first line received is the reset report,
    every later line is a state report. After the reset and after each state
    report the server writes one action line, or `null` once the script is
    exhausted. A report carrying a terminal event, or the `null` answer, ends
    the exchange: later reports are kept but not answered. Every report
    received is kept in `reports`.
    """

    def __init__(
        self,
        actions: Iterable[dict[str, Any]],
        *,
        host: str = "127.0.0.1",
        port: int = 0,
        terminal_kinds: Iterable[str] = (
            "DeathEvent",
            "WinEvent",
            "RoundEndedEvent",
            "BattleEndedEvent",
        ),
    ) -> None:
        self._actions = list(actions)
        self._terminal_kinds = set(terminal_kinds)
        self._lock = threading.Lock()
        self.reports: list[dict[str, Any]] = []
        self._server = socketserver.ThreadingTCPServer(
            (host, port), self._handler_class()
        )
        self._server.daemon_threads = True
        self._thread: threading.Thread | None = None

    @property
    def address(self) -> tuple[str, int]:
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def start(self) -> FakePolicyServer:
        self._thread = threading.Thread(
            target=self._server.serve_forever, daemon=True
        )
        self._thread.start()
        logger.info("Fake policy server listening on %s:%s", *self.address)
        return self

    def stop(self) -> None:
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join()

    def __enter__(self) -> FakePolicyServer:
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def _handler_class(self) -> type[socketserver.StreamRequestHandler]:
        server = self

        class _Handler(socketserver.StreamRequestHandler):
            def handle(self) -> None:
                script = iter(server._actions)
                finished = False
                for raw in self.rfile:
                    report = json.loads(raw.decode("utf-8"))
                    with server._lock:
                        server.reports.append(report)
                    if finished or server._is_terminal(report):
                        finished = True
                        continue
                    action = next(script, None)
                    finished = action is None
                    self.wfile.write((json.dumps(action) + "\n").encode("utf-8"))
                    self.wfile.flush()

        return _Handler

    def _is_terminal(self, report: dict[str, Any]) -> bool:
        events = report.get("events") or {}
        return any(kind in self._terminal_kinds for kind in events)
