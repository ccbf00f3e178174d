"""
Tests for the live WebSocket endpoint, the room hub and the health check
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.websockets import WebSocketDisconnect

from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.infrastructure.realtime.hub import LiveRoomHub


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.text == "ok"


def test_anonymous_socket_closed_with_policy_violation(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws"):
            pass
    assert exc_info.value.code == 1008


def test_join_and_receive_account_events(app, alice, rent):
    with alice.websocket_connect("/ws") as ws:
        ws.send_json({"action": "join-joint-account", "jointAccountId": rent["id"]})
        assert ws.receive_json() == {"event": "joined", "data": {"jointAccountId": rent["id"]}}

        targeted = app.state.hub.emit_to_joint_account(rent["id"], "transaction:added", {"id": "tx-1"})
        assert targeted == 1
        assert ws.receive_json() == {"event": "transaction:added", "data": {"id": "tx-1"}}


def test_actor_does_not_receive_own_event(app, alice, rent):
    with alice.websocket_connect("/ws") as ws:
        ws.send_json({"action": "join-joint-account", "jointAccountId": rent["id"]})
        ws.receive_json()

        targeted = app.state.hub.emit_to_joint_account(
            rent["id"], "transaction:added", {"id": "tx-1"}, exclude_user_id=alice.user["id"]
        )
        assert targeted == 0


def test_personal_room_joined_on_connect(app, alice):
    with alice.websocket_connect("/ws") as ws:
        # round trip so the connection is registered before emitting
        ws.send_json({"action": "ping"})
        assert ws.receive_json()["data"]["detail"] == "Unknown action"

        app.state.hub.emit_to_user(alice.user["id"], "invite:received", {"id": "inv-1"})
        assert ws.receive_json() == {"event": "invite:received", "data": {"id": "inv-1"}}


def test_non_member_cannot_join(login_as, rent):
    mallory = login_as("Mallory")
    with mallory.websocket_connect("/ws") as ws:
        ws.send_json({"action": "join-joint-account", "jointAccountId": rent["id"]})
        reply = ws.receive_json()

    assert reply["event"] == "error"
    assert reply["data"]["reason"] == "not_a_member"


def test_leave_room(app, alice, rent):
    with alice.websocket_connect("/ws") as ws:
        ws.send_json({"action": "join-joint-account", "jointAccountId": rent["id"]})
        ws.receive_json()
        ws.send_json({"action": "leave-joint-account", "jointAccountId": rent["id"]})
        assert ws.receive_json()["event"] == "left"

        assert app.state.hub.emit_to_joint_account(rent["id"], "transaction:added", {}) == 0


def test_non_json_frame_gets_error_reply(alice):
    with alice.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        assert ws.receive_json() == {"event": "error", "data": {"detail": "Frames must be JSON"}}

        ws.send_json({"action": "ping"})
        assert ws.receive_json()["event"] == "error"


@pytest.fixture
def live_broadcaster(app, session_factory):
    """Real broadcaster on the app's hub; queued deliveries are dropped."""
    broadcaster = FanoutBroadcaster(app.state.hub, session_factory=session_factory, spawn=lambda fn, *args: None)
    app.state.broadcaster = broadcaster
    return broadcaster


def _join_room(ws, rent):
    ws.send_json({"action": "join-joint-account", "jointAccountId": rent["id"]})
    assert ws.receive_json()["event"] == "joined"


def test_removed_member_stops_receiving_account_events(app, alice, bob, rent, join, live_broadcaster):
    join(alice, bob)
    with bob.websocket_connect("/ws") as ws:
        _join_room(ws, rent)

        response = alice.delete(f"/api/v1/joint-accounts/{rent['id']}/members/{bob.user['id']}")
        assert response.status_code == 200

        targeted = app.state.hub.emit_to_joint_account(
            rent["id"], "transaction:added", {"id": "tx-secret"}, exclude_user_id=alice.user["id"]
        )
        assert targeted == 0

        # personal room still works and is the next frame bob sees
        app.state.hub.emit_to_user(bob.user["id"], "member:removed", {"id": rent["id"]})
        assert ws.receive_json()["event"] == "member:removed"


def test_member_who_leaves_stops_receiving(app, alice, bob, rent, join, live_broadcaster):
    join(alice, bob)
    with bob.websocket_connect("/ws") as ws:
        _join_room(ws, rent)
        assert bob.post(f"/api/v1/joint-accounts/{rent['id']}/leave").status_code == 200

        assert app.state.hub.emit_to_joint_account(rent["id"], "transaction:added", {}) == 0


def test_deleted_account_room_is_emptied(app, alice, bob, rent, join, live_broadcaster):
    join(alice, bob)
    with alice.websocket_connect("/ws") as alice_ws, bob.websocket_connect("/ws") as bob_ws:
        _join_room(alice_ws, rent)
        _join_room(bob_ws, rent)
        assert alice.delete(f"/api/v1/joint-accounts/{rent['id']}").status_code == 200

        assert app.state.hub.emit_to_joint_account(rent["id"], "transaction:added", {}) == 0


def test_hub_evicts_only_that_users_sockets():
    hub = LiveRoomHub()
    sockets = {name: MagicMock(accept=AsyncMock()) for name in ("alice", "bob-phone", "bob-laptop")}
    for name, ws in sockets.items():
        asyncio.run(hub.connect(ws, name.split("-")[0]))
        hub.join(ws, "joint-account:a1")

    assert hub.evict("joint-account:a1", "bob") == 2
    assert hub.rooms_of(sockets["alice"]) == {"user:alice", "joint-account:a1"}
    assert hub.rooms_of(sockets["bob-phone"]) == {"user:bob"}
    assert hub.evict("joint-account:a1", "bob") == 0
