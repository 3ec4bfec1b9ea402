"""
End-to-end tests: both transports served by one WargServer
"""

import asyncio
import json

import pytest
import requests
from websockets.asyncio.client import connect

from conftest import FakeDriver
from warg.config import Config
from warg.server import WargServer


async def _http(method, url, **kwargs):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: requests.request(method, url, timeout=5, **kwargs))


@pytest.mark.asyncio
async def test_http_action_reaches_websocket_observer():
    driver = FakeDriver()
    server = WargServer(Config(host="127.0.0.1", port=0, ws_port=0), driver=driver)
    await server.start()
    base = f"http://127.0.0.1:{server.http_port}"
    try:
        async with connect(f"ws://127.0.0.1:{server.ws_server.bound_port}") as websocket:
            snapshot = json.loads(await asyncio.wait_for(websocket.recv(), 2))
            assert snapshot["type"] == "status"

            response = await _http("POST", f"{base}/api/browser/start")
            assert response.json() == {"success": True, "message": "Browser started"}
            notification = json.loads(await asyncio.wait_for(websocket.recv(), 2))
            assert notification == {"type": "browser_started"}

            health = (await _http("GET", f"{base}/api/health")).json()
            assert health["browserReady"] is True

            status = (await _http("GET", f"{base}/api/status")).json()
            assert status["connectedClients"] == 1
    finally:
        await server.stop()

    assert driver.handle.browser_closed is True
    assert not server.session_manager.is_ready()
    assert server.http_port is None


@pytest.mark.asyncio
async def test_stop_without_browser():
    driver = FakeDriver()
    server = WargServer(Config(host="127.0.0.1", port=0, ws_port=0), driver=driver)
    await server.start()
    await server.stop()

    assert driver.launch_count == 0
