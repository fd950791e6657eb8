import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from rlbridge.bridge.contracts import ActionName, HitWallEvent, StateReport
from rlbridge.bridge.errors import ActionDecodeError, TransportError
from rlbridge.bridge.scheduler import ExitReason, TurnScheduler
from rlbridge.bridge.transport import HttpTransport, StreamTransport

from tests._support.fakes import FakeSim


def _report() -> StateReport:
    return StateReport(
        state={"time": 7, "energy": 88.0},
        events={"HitWallEvent": [HitWallEvent(time=7, bearing=180.0)]},
    )


def _free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_stream_writes_one_json_line_per_report() -> None:
    ours, theirs = socket.socketpair()
    peer = theirs.makefile("r", encoding="utf-8")
    with StreamTransport(ours) as transport:
        transport.reset(_report())
        transport.set_state(StateReport(state={"time": 8}))

        first = json.loads(peer.readline())
        second = json.loads(peer.readline())

    assert first["state"]["time"] == 7
    assert first["events"]["HitWallEvent"][0]["bearing"] == 180.0
    assert second == {"state": {"time": 8}, "events": {}}
    peer.close()
    theirs.close()


def test_stream_reads_actions_and_null() -> None:
    ours, theirs = socket.socketpair()
    theirs.sendall(b'{"name": "turnLeft", "value": 30}\nnull\n')
    transport = StreamTransport(ours)

    action = transport.get_action()

    assert action is not None
    assert action.known_name == ActionName.TURN_LEFT
    assert action.value == 30.0
    assert transport.get_action() is None
    transport.close()
    theirs.close()


def test_stream_eof_and_bad_lines() -> None:
    ours, theirs = socket.socketpair()
    theirs.sendall(b'{"name": "fire"}\n')
    theirs.close()
    transport = StreamTransport(ours)

    with pytest.raises(ActionDecodeError):
        transport.get_action()
    with pytest.raises(TransportError) as excinfo:
        transport.get_action()
    assert excinfo.value.error_code == "eof"
    transport.close()


def test_stream_write_after_close_fails() -> None:
    ours, theirs = socket.socketpair()
    transport = StreamTransport(ours)
    transport.close()
    transport.close()

    with pytest.raises(TransportError) as excinfo:
        transport.set_state(_report())
    assert excinfo.value.error_code == "closed"
    theirs.close()


def test_stream_connect_to_closed_port() -> None:
    with pytest.raises(TransportError) as excinfo:
        StreamTransport.connect("127.0.0.1", _free_port(), timeout=1.0)
    assert excinfo.value.error_code == "unreachable"


class _PolicyHandler(BaseHTTPRequestHandler):
    received: list[tuple[str, str, dict]] = []
    action_body = b'{"action": {"name": "stop", "value": true}}'
    status = 200
    missing_bytes = 0

    def do_PUT(self) -> None:
        length = int(self.headers.get("Content-Length", 0))
        body = json.loads(self.rfile.read(length).decode("utf-8"))
        self.received.append(("PUT", self.path, body))
        self._reply(b"{}")

    def do_GET(self) -> None:
        self.received.append(("GET", self.path, {}))
        self._reply(self.action_body)

    def _reply(self, body: bytes) -> None:
        self.send_response(self.status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body) + self.missing_bytes))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args) -> None:
        return None


@pytest.fixture
def policy_http_server():
    handler = type("Handler", (_PolicyHandler,), {"received": []})
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    yield f"http://{host}:{port}", handler
    server.shutdown()
    server.server_close()
    thread.join()


def test_http_uses_the_three_endpoints(policy_http_server) -> None:
    base_url, handler = policy_http_server
    with HttpTransport(base_url + "/", timeout=5.0) as transport:
        transport.reset(_report())
        action = transport.get_action()
        transport.set_state(StateReport(state={"time": 9}))

    assert action is not None
    assert action.known_name == ActionName.STOP
    assert action.value is True
    assert [(method, path) for method, path, _ in handler.received] == [
        ("PUT", "/reset-for-new-run"),
        ("GET", "/get-action"),
        ("PUT", "/set-state"),
    ]
    assert handler.received[0][2]["state"]["energy"] == 88.0
    assert handler.received[2][2] == {"state": {"time": 9}, "events": {}}


def test_http_null_action_means_no_more_actions(policy_http_server) -> None:
    base_url, handler = policy_http_server
    handler.action_body = b'{"action": null}'

    assert HttpTransport(base_url, timeout=5.0).get_action() is None


def test_http_error_status(policy_http_server) -> None:
    base_url, handler = policy_http_server
    handler.status = 503

    with pytest.raises(TransportError) as excinfo:
        HttpTransport(base_url, timeout=5.0).set_state(_report())
    assert excinfo.value.error_code == "http_status"


def test_http_unreachable_server() -> None:
    transport = HttpTransport(f"http://127.0.0.1:{_free_port()}", timeout=1.0)

    with pytest.raises(TransportError) as excinfo:
        transport.get_action()
    assert excinfo.value.error_code == "unreachable"


def test_http_body_that_is_not_utf8(policy_http_server) -> None:
    base_url, handler = policy_http_server
    handler.action_body = b"\xff\xfe"

    with pytest.raises(ActionDecodeError) as excinfo:
        HttpTransport(base_url, timeout=5.0).get_action()
    assert excinfo.value.error_code == "action_not_utf8"


def test_http_truncated_body(policy_http_server) -> None:
    base_url, handler = policy_http_server
    handler.missing_bytes = 10

    with pytest.raises(TransportError) as excinfo:
        HttpTransport(base_url, timeout=5.0).get_action()
    assert excinfo.value.error_code == "io_error"


def test_stream_line_that_is_not_utf8() -> None:
    ours, theirs = socket.socketpair()
    theirs.sendall(b"\xff\xfe\n")
    transport = StreamTransport(ours)

    with pytest.raises(ActionDecodeError) as excinfo:
        transport.get_action()
    assert excinfo.value.error_code == "action_not_utf8"
    transport.close()
    theirs.close()


def test_undecodable_stream_bytes_end_the_episode_with_a_report() -> None:
    ours, theirs = socket.socketpair()
    theirs.sendall(b"\xff\xfe\n")
    peer = theirs.makefile("r", encoding="utf-8")

    with StreamTransport(ours) as transport:
        result = TurnScheduler(FakeSim(), transport).run()

    assert result.exit_reason == ExitReason.DECODE_ERROR
    assert result.clean is False
    assert result.reports_sent == 2
    reset = json.loads(peer.readline())
    closing = json.loads(peer.readline())
    assert reset["state"]["time"] == 0
    assert closing["events"] == {}
    peer.close()
    theirs.close()
