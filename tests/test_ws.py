import pytest
from starlette.websockets import WebSocketDisconnect

from wingx.auth_local import decode_access_token
from conftest import ADMIN_EMAIL, insert_pending_order, register, wait_until


def receive_until(ws, event_type, limit=20):
    for _ in range(limit):
        event = ws.receive_json()
        if event["type"] == event_type:
            return event
    raise AssertionError(f"no {event_type} event received")


def test_rejects_invalid_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/notifications?token=basura") as ws:
            ws.receive_json()


def test_new_order_alert(client):
    token = register(client, ADMIN_EMAIL)["access_token"]
    session = client.app.state.services.registry.get(decode_access_token(token)["sid"])
    # Baseline delivery (no orders) must have happened before the storefront writes
    wait_until(lambda: session.engine.synced)

    with client.websocket_connect(f"/ws/notifications?token={token}") as ws:
        state = ws.receive_json()
        assert state["type"] == "state"
        assert state["state"] == "listening"
        assert state["pending_count"] == 0

        ws.send_json({"type": "permission_state", "state": "default"})
        prompt = receive_until(ws, "permission_prompt")
        assert prompt["confirm_text"] == "✅ Sí, activar"
        ws.send_json({"type": "permission_result", "state": "granted"})
        wait_until(lambda: session.engine.permission == "granted")

        insert_pending_order("ws000001", customer_name="Luis", total=1234.5)

        alert = receive_until(ws, "new_order")
        assert alert["toast"]["title"] == "🔔 Nuevo Pedido Web"
        assert alert["toast"]["body"] == "Luis - $1.234,5"
        assert receive_until(ws, "play_sound")["volume"] == 0.5
        notification = receive_until(ws, "os_notification")
        assert notification["tag"] == "new-order"

        ws.send_json({"type": "clear_new_orders"})
        receive_until(ws, "toast_cleared")
        assert session.engine.has_new_orders is False
        assert session.engine.pending_count == 1


def test_permission_prompt_offered_once(client):
    token = register(client, ADMIN_EMAIL)["access_token"]
    with client.websocket_connect(f"/ws/notifications?token={token}") as ws:
        ws.receive_json()
        ws.send_json({"type": "permission_state", "state": "default"})
        receive_until(ws, "permission_prompt")

    with client.websocket_connect(f"/ws/notifications?token={token}") as ws:
        ws.receive_json()
        ws.send_json({"type": "permission_state", "state": "default"})
        ws.send_json({"type": "clear_new_orders"})
        # Messages are handled in order, so a prompt would arrive first
        assert ws.receive_json()["type"] == "toast_cleared"


def test_malformed_frames_are_ignored(client):
    token = register(client, ADMIN_EMAIL)["access_token"]
    with client.websocket_connect(f"/ws/notifications?token={token}") as ws:
        ws.receive_json()
        ws.send_text("esto no es json")
        ws.send_json(["no", "es", "un", "objeto"])
        ws.send_json({"type": "clear_new_orders"})
        assert receive_until(ws, "toast_cleared")["type"] == "toast_cleared"
