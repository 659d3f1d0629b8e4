"""
Notification channel of a dashboard session.

The browser connects with its access token; the server pushes badge counts,
new-order alerts (toast, sound, OS notification) and feed errors, and the
browser reports its notification permission and toast actions back.
"""

import asyncio

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from wingx.api.deps import session_from_token
from wingx.application.notifications import PERMISSION_PROMPT
from wingx.application.session import DashboardSession
from wingx.core import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["notifications"])

PERMISSION_STATES = ("default", "granted", "denied")


def state_event(session: DashboardSession) -> dict:
    engine = session.engine
    return {
        "type": "state",
        "state": engine.state.value,
        "synced": engine.synced,
        "pending_count": engine.pending_count,
        "has_new_orders": engine.has_new_orders,
        "toast": engine.toast(),
        "feed_error": engine.feed_error,
        "permission": engine.permission,
    }


def handle_message(session: DashboardSession, message: dict, send) -> None:
    kind = message.get("type")
    engine = session.engine
    if kind == "permission_state":
        state = message.get("state")
        if state in PERMISSION_STATES and engine.report_permission(state):
            send(PERMISSION_PROMPT)
    elif kind == "permission_result":
        # Outcome of the browser's requestPermission() after the prompt
        state = message.get("state")
        if state in PERMISSION_STATES:
            engine.permission = state
    elif kind == "clear_new_orders":
        engine.clear_new_orders()
    else:
        logger.warning(f"Ignoring unknown message type {kind!r}")


@router.websocket("/ws/notifications")
async def notifications(websocket: WebSocket, token: str = Query(...)):
    session = session_from_token(websocket.app.state.services, token)
    if session is None:
        await websocket.close(code=4401)
        return
    await websocket.accept()

    # Events are queued so that only the pump task writes to the socket
    queue: asyncio.Queue = asyncio.Queue()
    queue.put_nowait(state_event(session))
    remove_sink = session.engine.add_sink(queue.put_nowait)

    async def pump():
        while True:
            event = await queue.get()
            await websocket.send_json(event)

    pump_task = asyncio.create_task(pump())
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                logger.warning(f"Ignoring malformed frame on session {session.session_id}")
                continue
            if isinstance(message, dict):
                handle_message(session, message, queue.put_nowait)
    except WebSocketDisconnect:
        logger.info(f"Notification channel of session {session.session_id} closed")
    finally:
        remove_sink()
        pump_task.cancel()
        try:
            await pump_task
        except asyncio.CancelledError:
            pass
        except Exception as exc:
            logger.warning(f"Notification pump of session {session.session_id} failed: {exc!r}")
