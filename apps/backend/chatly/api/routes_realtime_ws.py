import asyncio
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from redis.exceptions import RedisError

from chatly.services.realtime_service import TABLES, subscribe

router = APIRouter(prefix="/ws", tags=["realtime-ws"])
logger = logging.getLogger(__name__)

async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # The client never sends anything meaningful; reading only detects the close
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass

async def _forward(websocket: WebSocket, platform_client_id: int, tables: list) -> None:
    async for event in subscribe(platform_client_id, tables):
        await websocket.send_json(event)

@router.websocket("/realtime/{platform_client_id}")
async def realtime_socket(websocket: WebSocket, platform_client_id: int):
    requested = websocket.query_params.get("tables")
    tables = [t for t in requested.split(",") if t in TABLES] if requested else list(TABLES)

    await websocket.accept()
    if not tables:
        await websocket.send_json({"type": "error", "error": "No known table requested"})
        await websocket.close(code=1003)
        return

    forward = asyncio.create_task(_forward(websocket, platform_client_id, tables))
    listen = asyncio.create_task(_wait_for_disconnect(websocket))
    done, pending = await asyncio.wait({forward, listen}, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()

    if forward in done and forward.exception() is not None:
        exc = forward.exception()
        if not isinstance(exc, (RedisError, WebSocketDisconnect)):
            raise exc
        logger.warning("Realtime stream for tenant %s ended: %s", platform_client_id, exc)
        try:
            await websocket.close(code=1011)
        except RuntimeError:
            pass
