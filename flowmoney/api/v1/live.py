"""
WebSocket endpoint for live updates.

Client actions:
    {"action": "join-joint-account", "jointAccountId": "..."}
    {"action": "leave-joint-account", "jointAccountId": "..."}
"""
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool

from flowmoney.application.membership import get_membership
from flowmoney.infrastructure.realtime.hub import LiveRoomHub, joint_account_room

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])


def _reply(event: str, **data) -> dict:
    return {"event": event, "data": data}


def _is_member(session_factory, joint_account_id: str, user_id: str) -> bool:
    """One short session per check; the socket holds no connection in between."""
    db = session_factory()
    try:
        return get_membership(db, joint_account_id, user_id) is not None
    finally:
        db.close()


@router.websocket("/ws")
async def live(websocket: WebSocket):
    user_id = websocket.session.get("user_id")
    if not user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    hub: LiveRoomHub = websocket.app.state.hub
    session_factory = websocket.app.state.session_factory
    await hub.connect(websocket, user_id)
    try:
        while True:
            try:
                message = json.loads(await websocket.receive_text())
            except ValueError:
                await websocket.send_json(_reply("error", detail="Frames must be JSON"))
                continue

            action = message.get("action") if isinstance(message, dict) else None
            joint_account_id = message.get("jointAccountId") if isinstance(message, dict) else None

            if action == "join-joint-account" and joint_account_id:
                if not await run_in_threadpool(_is_member, session_factory, joint_account_id, user_id):
                    await websocket.send_json(
                        _reply("error", detail="You are not a member of this joint account", reason="not_a_member")
                    )
                    continue
                hub.join(websocket, joint_account_room(joint_account_id))
                await websocket.send_json(_reply("joined", jointAccountId=joint_account_id))
            elif action == "leave-joint-account" and joint_account_id:
                hub.leave(websocket, joint_account_room(joint_account_id))
                await websocket.send_json(_reply("left", jointAccountId=joint_account_id))
            else:
                await websocket.send_json(_reply("error", detail="Unknown action"))
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(websocket)
