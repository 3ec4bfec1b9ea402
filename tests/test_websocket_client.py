"""
Synchronous WebSocket client tests against a server on a background loop
"""

import pytest

from warg.cli.websocket_client import WebSocketClient
from warg.server.loop_bridge import AsyncBridge
from warg.server.websocket_server import WebSocketServer


@pytest.fixture
def server_url(dispatcher, registry):
    bridge = AsyncBridge.start_background(name="test-server-loop")
    server = WebSocketServer(dispatcher, registry, host="127.0.0.1", port=0)
    bridge.run(server.start())
    yield f"ws://127.0.0.1:{server.bound_port}"
    bridge.run(server.shutdown())
    bridge.stop()


@pytest.fixture
def client(server_url):
    client = WebSocketClient(server_url, timeout=5.0)
    yield client
    client.close()


def test_request_skips_snapshot_and_matches_id(client):
    response = client.request("browser_start")

    assert response["type"] == "browser_started"
    assert response["message"] == "Browser started"
    assert "id" in response


def test_send_command_returns_result(client, driver):
    client.request("browser_start")

    result = client.send_command("navigate", {"url": "https://example.com/"})

    assert result == {"success": True, "data": {"url": "https://example.com/"}}
    assert driver.launch_count == 1


def test_send_command_failure_result(client):
    result = client.send_command("reload")

    assert result["success"] is False
    assert result["code"] == "NOT_READY"


def test_error_response_becomes_failed_result(client, monkeypatch):
    monkeypatch.setattr(client, "request", lambda *args: {"type": "error", "error": "boom"})
    assert client.send_command("reload") == {"success": False, "error": "boom"}


def test_connection_refused_raises_oserror():
    client = WebSocketClient("ws://127.0.0.1:1", timeout=2.0)
    try:
        with pytest.raises(OSError):
            client.request("get_status")
    finally:
        client.close()
