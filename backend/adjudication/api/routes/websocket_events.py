"""
WebSocket API for live decision updates
"""
import asyncio

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from adjudication.api.dependencies import get_session_config, get_store
from adjudication.core.config import SessionConfig
from adjudication.core.logging_config import LoggingConfig
from adjudication.services.decision_change_feed import DecisionChangeEvent
from adjudication.services.decision_store import DecisionStoreGateway
from adjudication.services.live_decision_view import LiveDecisionView

router = APIRouter(prefix="/api/ws", tags=["websocket"])
logger = LoggingConfig.get_logger(__name__)


def _change_message(event: DecisionChangeEvent, view: LiveDecisionView) -> dict:
    return {
        "type": "change",
        "event_type": event.event_type.value,
        "sequence": event.sequence,
        "position": view.position_of(event.record.id),
        "data": event.record.to_dict(),
    }


async def _forward(websocket: WebSocket, queue: "asyncio.Queue[dict]"):
    while True:
        message = await queue.get()
        await websocket.send_json(message)


async def _stop_sender(sender: "asyncio.Task[None]", matrix_id: str):
    """Cancel the forwarding task and collect how it ended"""
    sender.cancel()
    try:
        await sender
    except asyncio.CancelledError:
        pass
    except WebSocketDisconnect:
        logger.info(f"WebSocket closed while forwarding changes for matrix: {matrix_id}")
    except Exception as e:
        logger.warning(f"Forwarding changes failed for matrix {matrix_id}: {e}", exc_info=True)


@router.websocket("/decisions")
async def websocket_decisions(
    websocket: WebSocket,
    store: DecisionStoreGateway = Depends(get_store),
    session: SessionConfig = Depends(get_session_config),
):
    """
    Stream the session matrix's decisions

    Sends one "snapshot" message, then a "change" message for every merged event.
    """
    await websocket.accept()
    logger.info(f"WebSocket connected for matrix: {session.matrix_id}")

    queue: "asyncio.Queue[dict]" = asyncio.Queue()

    async with LiveDecisionView(store, session.matrix_id) as view:
        # No await between seeding and hooking the listener, so nothing is missed
        view.on_change = lambda event, v: queue.put_nowait(_change_message(event, v))
        snapshot = {
            "type": "snapshot",
            "matrix_id": session.matrix_id,
            "data": [record.to_dict() for record in view.decisions],
        }
        await websocket.send_json(snapshot)

        sender = asyncio.create_task(_forward(websocket, queue))
        try:
            while True:
                # Client messages are not part of the protocol; this waits for disconnect
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected for matrix: {session.matrix_id}")
        finally:
            await _stop_sender(sender, session.matrix_id)
