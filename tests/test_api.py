import time

import pytest
from fastapi.testclient import TestClient

from lightsync.api.app import init_app
from lightsync.core.config import DeviceManagerConfig, RetryConfig
from lightsync.core.manager import DeviceManager


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture
def devices(make_device):
    return [make_device("A"), make_device("B", fail_initializations=-1)]


@pytest.fixture
def client(devices):
    """Test client with a started application"""
    config = DeviceManagerConfig(
        retry=RetryConfig(attempts=15, interval_s=30.0), shutdown_grace_s=0.5
    )
    app = init_app(manager=DeviceManager(devices, config))
    with TestClient(app) as client:
        yield client


class TestHealth:
    def test_health_after_startup(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "manager": True,
            "any_initialized": True,
        }

    def test_startup_builds_devices_from_config(self, device_config):
        config = DeviceManagerConfig.from_dict(device_config)
        app = init_app(config=config)

        with TestClient(app) as client:
            manager = client.app.state.device_manager
            assert [d.name for d in manager.devices] == ["A", "B"]
            assert [d.name for d in manager.get_initialized_devices()] == ["A"]

        assert manager.closed

    def test_app_shutdown_takes_devices_offline(self, make_device):
        late = make_device("Late", fail_initializations=1)
        online = make_device("A")
        config = DeviceManagerConfig(
            retry=RetryConfig(attempts=15, interval_s=0.01), shutdown_grace_s=0.5
        )
        manager = DeviceManager([late, online], config)

        with TestClient(init_app(manager=manager)):
            pass
        time.sleep(0.05)

        assert manager.closed
        assert manager.get_initialized_devices() == []

    def test_requests_before_startup(self):
        client = TestClient(init_app())

        assert client.get("/health").json()["status"] == "starting"
        assert client.get("/api/devices").status_code == 503


class TestDevicesEndpoints:
    def test_list_devices(self, client):
        response = client.get("/api/devices")

        assert response.status_code == 200
        data = response.json()
        assert data["any_initialized"] is True
        assert data["remaining_retry_attempts"] == 15
        assert data["retry"]["active"] is True
        assert [d["initialized"] for d in data["devices"]] == [True, False]
        assert data["status_report"].endswith("Retries: 15\r\n")

    def test_shutdown_then_initialize(self, client, devices):
        response = client.post("/api/devices/shutdown")
        assert response.json()["status"] == "success"
        assert devices[0].shutdown_calls == 1

        response = client.post("/api/devices/initialize")
        data = response.json()
        assert data["status"] == "partial"
        assert data["failed"] == 1
        assert data["initialized"] == ["A"]

    def test_reset(self, client, devices):
        assert client.post("/api/devices/reset").status_code == 200
        assert devices[0].reset_calls == 1

    def test_disable_and_enable_type(self, client, devices):
        pixels = [[1, 2, 3]] * 8

        client.post("/api/devices/types/MockA/disable")
        response = client.post("/api/frame", json={"pixels": pixels})

        assert response.json()["dispatched"] == 0
        assert wait_for(lambda: not devices[0].is_initialized())
        assert devices[0].update_calls == []

        client.post("/api/devices/types/MockA/enable")
        client.post("/api/devices/initialize")
        assert devices[0].is_initialized()


class TestFrames:
    def test_push_frame(self, client, devices):
        response = client.post("/api/frame", json={"pixels": [[9, 8, 7]] * 8})

        assert response.status_code == 200
        assert response.json()["dispatched"] == 1
        assert wait_for(lambda: devices[0].pixels[0].tolist() == [9, 8, 7])
        assert len(devices[0].update_calls) == 1

    @pytest.mark.parametrize(
        "pixels", [[[1, 2]], [[0, 0, 256]], [[-1, 0, 0]]]
    )
    def test_invalid_frame(self, client, pixels):
        response = client.post("/api/frame", json={"pixels": pixels})

        assert response.status_code == 422


class TestWebSocket:
    def test_ping(self, client):
        with client.websocket_connect("/ws/frames") as websocket:
            websocket.send_json({"type": "ping"})
            data = websocket.receive_json()

        assert data["type"] == "pong"
        assert "client_id" in data

    def test_invalid_messages(self, client):
        with client.websocket_connect("/ws/frames") as websocket:
            websocket.send_text("not json")
            assert websocket.receive_json() == {"type": "error", "message": "Invalid JSON"}

            websocket.send_json({"type": "dance"})
            assert "Unknown message type" in websocket.receive_json()["message"]

            websocket.send_json({"type": "frame", "pixels": [[1, 2]]})
            assert websocket.receive_json()["type"] == "error"

    def test_frame_then_state(self, client, devices):
        with client.websocket_connect("/ws/frames") as websocket:
            websocket.send_json({"type": "frame", "pixels": [[5, 5, 5]] * 8})
            handle = client.app.state.device_manager.get_handle("A")
            assert wait_for(lambda: handle.coalescer.metrics.applied == 1)

            websocket.send_json({"type": "get_state"})
            data = websocket.receive_json()

        assert data["type"] == "state"
        assert data["data"]["devices"][0]["metrics"]["applied"] == 1

    def test_devices_changed_pushed(self, client):
        with client.websocket_connect("/ws/frames") as websocket:
            websocket.send_json({"type": "ping"})
            assert websocket.receive_json()["type"] == "pong"
            client.post("/api/devices/initialize")
            data = websocket.receive_json()

        assert data["type"] == "devices_changed"
        assert len(data["devices"]) == 2
