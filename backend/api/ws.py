"""
Battery Line MES - WebSocket API
Version: 1.1.1

Changelog:
v1.1.1 (2026-10-19): Broadcast over a snapshot of the client set
v1.1.0 (2026-10-12): order_closed broadcast when a lot reaches its target
v1.0.0 (2026-09-28): Station lock updates pushed to supervisor boards
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from typing import Set
import asyncio
import json
import logging

from config import settings
from database import get_db
from services import catalog

router = APIRouter()
logger = logging.getLogger(__name__)

# Active WebSocket connections
active_connections: Set[WebSocket] = set()


async def _operations_payload() -> list:
    async with get_db() as db:
        operations = await catalog.list_operations(db)
    return [op.model_dump(mode='json') for op in operations]


@router.websocket("/live")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time station lock updates
    Sends the operations list every WS_UPDATE_INTERVAL seconds
    """
    if len(active_connections) >= settings.WS_MAX_CONNECTIONS:
        await websocket.close(code=1013)
        logger.warning("WebSocket client rejected: connection limit reached")
        return

    await websocket.accept()
    active_connections.add(websocket)
    logger.info(f"WebSocket client connected. Total connections: {len(active_connections)}")

    try:
        await websocket.send_json({"type": "initial", "data": await _operations_payload()})

        while True:
            try:
                data = await asyncio.wait_for(
                    websocket.receive_text(), timeout=settings.WS_UPDATE_INTERVAL
                )
                if data == "ping":
                    await websocket.send_text("pong")

            except asyncio.TimeoutError:
                await websocket.send_json({"type": "update", "data": await _operations_payload()})

    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        active_connections.discard(websocket)
        logger.info(f"WebSocket client removed. Total connections: {len(active_connections)}")


async def _broadcast(payload: dict):
    if not active_connections:
        return

    message = json.dumps(payload)
    disconnected = set()
    for connection in list(active_connections):
        try:
            await connection.send_text(message)
        except Exception as e:
            logger.error(f"Failed to send {payload['type']} to client: {e}")
            disconnected.add(connection)

    active_connections.difference_update(disconnected)


async def broadcast_station_update(operation_id: str, operation_data: dict):
    """Called by the station lock manager when a lock changes hands"""
    await _broadcast({
        "type": "station_update",
        "operation_id": operation_id,
        "data": operation_data,
    })


async def broadcast_order_closed(order_number: str, order_data: dict):
    """Lot-finished signal for supervisor boards"""
    await _broadcast({
        "type": "order_closed",
        "order_number": order_number,
        "data": order_data,
    })


async def broadcast_alert(message: str, severity: str = "info"):
    """
    Broadcast a system alert to all connected clients
    severity: "info", "success", "warning", "error"
    """
    await _broadcast({"type": "alert", "severity": severity, "message": message})
