"""Transports carrying state reports out and actions in.

Two realizations share one contract: every report is followed by exactly
one action read, except the opening reset and the closing terminal flush.
A report is serialized completely before any byte reaches the wire.
"""

from __future__ import annotations

import logging
import socket
from http import client
from typing import Protocol
from urllib import error, request

from rlbridge.bridge.contracts import (
    Action,
    StateReport,
    parse_action_line,
    parse_action_response,
)
from rlbridge.bridge.errors import ActionDecodeError, TransportError

logger = logging.getLogger("rlbridge.bridge.transport")

DEFAULT_HTTP_BASE_URL = "http://127.0.0.1:12345"
DEFAULT_STREAM_HOST = "127.0.0.1"
DEFAULT_STREAM_PORT = 54321

RESET_PATH = "reset-for-new-run"
GET_ACTION_PATH = "get-action"
SET_STATE_PATH = "set-state"


class Transport(Protocol):
    def reset(self, report: StateReport) -> None:
        """Send the opening report of an episode."""

    def get_action(self) -> Action | None:
        """Block for the next action; None when the server has none."""

    def set_state(self, report: StateReport) -> None:
        """Send the report that follows an executed action."""

    def close(self) -> None:
        """Release the underlying connection."""


class HttpTransport:
    """Three blocking endpoints on a REST policy server."""

    def __init__(
        self, base_url: str = DEFAULT_HTTP_BASE_URL, *, timeout: float | None = None
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def reset(self, report: StateReport) -> None:
        self._request(RESET_PATH, method="PUT", body=report.to_json())

    def get_action(self) -> Action | None:
        body = self._request(GET_ACTION_PATH, method="GET")
        return parse_action_response(_decode_utf8(body))

    def set_state(self, report: StateReport) -> None:
        self._request(SET_STATE_PATH, method="PUT", body=report.to_json())

    def close(self) -> None:
        return None

    def __enter__(self) -> HttpTransport:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, path: str, *, method: str, body: str | None = None) -> bytes:
        url = f"{self._base_url}/{path}"
        data = body.encode("utf-8") if body is not None else None
        req = request.Request(
            url,
            data=data,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            method=method,
        )
        try:
            with request.urlopen(req, timeout=self._timeout) as response:
                return response.read()
        except error.HTTPError as exc:
            raise TransportError(
                f"{method} {url} failed with status {exc.code}",
                error_code="http_status",
            ) from exc
        except error.URLError as exc:
            raise TransportError(
                f"Could not reach policy server at {url}: {exc.reason}",
                error_code="unreachable",
            ) from exc
        except (OSError, client.HTTPException) as exc:
            raise TransportError(
                f"{method} {url} failed: {exc}", error_code="io_error"
            ) from exc


class StreamTransport:
    """One persistent TCP connection carrying newline-delimited JSON."""

    def __init__(self, sock: socket.socket) -> None:
        self._socket = sock
        self._reader = sock.makefile("rb")
        self._closed = False

    @classmethod
    def connect(
        cls,
        host: str = DEFAULT_STREAM_HOST,
        port: int = DEFAULT_STREAM_PORT,
        *,
        timeout: float | None = None,
    ) -> StreamTransport:
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as exc:
            raise TransportError(
                f"Could not connect to policy server at {host}:{port}: {exc}",
                error_code="unreachable",
            ) from exc
        logger.info("Connected to policy server at %s:%s", host, port)
        return cls(sock)

    def reset(self, report: StateReport) -> None:
        self._write_line(report.to_json())

    def get_action(self) -> Action | None:
        try:
            line = self._reader.readline()
        except OSError as exc:
            raise TransportError(
                f"Reading action failed: {exc}", error_code="io_error"
            ) from exc
        if not line:
            raise TransportError(
                "Policy server closed the connection", error_code="eof"
            )
        return parse_action_line(_decode_utf8(line))

    def set_state(self, report: StateReport) -> None:
        self._write_line(report.to_json())

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._reader.close()
        self._socket.close()

    def __enter__(self) -> StreamTransport:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _write_line(self, text: str) -> None:
        if self._closed:
            raise TransportError("Transport is closed", error_code="closed")
        data = (text + "\n").encode("utf-8")
        try:
            self._socket.sendall(data)
        except OSError as exc:
            raise TransportError(
                f"Writing report failed: {exc}", error_code="io_error"
            ) from exc


def _decode_utf8(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ActionDecodeError(
            f"action message is not UTF-8: {exc.reason}", error_code="action_not_utf8"
        ) from exc
