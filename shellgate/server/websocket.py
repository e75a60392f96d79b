"""WebSocket gateway between browser clients and SSH sessions."""

import asyncio
import json
import logging
import uuid
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from shellgate.errors import ErrorKind
from shellgate.models.session import ConnectRequest
from shellgate.server.dependencies import RegistryDep
from shellgate.services.connection import EventKind, ShellEvent
from shellgate.services.registry import SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


class ClientChannel:
    """Pushes session events to one WebSocket client.

    Output that arrives before the ``connected`` frame is held until it
    has been sent.
    """

    def __init__(self, websocket: WebSocket, registry: SessionRegistry):
        self.websocket = websocket
        self.registry = registry
        self.client_id = str(uuid.uuid4())
        self._ready = asyncio.Event()
        self._closing = False
        self._send_lock = asyncio.Lock()

    async def send(self, message: dict[str, Any]) -> None:
        async with self._send_lock:
            await self.websocket.send_json(message)

    async def send_error(self, message: str, kind: str) -> None:
        await self.send({"type": "error", "message": message, "kind": kind})

    async def on_event(self, event: ShellEvent) -> None:
        """Forward a connection event to the client."""
        await self._ready.wait()

        if event.kind == EventKind.DATA:
            await self.send({"type": "output", "data": event.data})
        elif event.kind == EventKind.ERROR:
            await self.send_error(event.data, ErrorKind.IO_ERROR.value)
        elif event.kind == EventKind.CLOSED and not self._closing:
            # Shell ended without a client request; free the session so the client can reconnect
            await self.registry.disconnect_session(self.client_id)
            if not self._closing:
                await self.send({"type": "disconnected", "message": "Session closed"})

    async def connect(self, data: dict) -> None:
        try:
            request = ConnectRequest.model_validate(data)
        except ValidationError as e:
            await self.send_error(f"Invalid connection settings: {e}", ErrorKind.CONFIG_INVALID.value)
            return

        config = request.to_config()
        logger.info(
            "Client %s requesting SSH connection to %s:%d",
            self.client_id, config.host, config.port,
        )

        self._closing = False
        self._ready.clear()
        result = await self.registry.create_session(self.client_id, config, listener=self.on_event)

        if not result.success:
            logger.warning(
                "Failed to establish SSH connection for client %s: %s",
                self.client_id, result.error_message,
            )
            await self.send_error(result.error_message or "Unknown error", result.error_kind.value)
            return

        session = result.data
        await self.send({
            "type": "connected",
            "session_id": session.session_id,
            "connected_at": session.connected_at.isoformat(),
            "message": f"Connected to {config.host}:{config.port}",
        })
        self._ready.set()

    async def input(self, data: dict) -> None:
        result = await self.registry.send_input(self.client_id, str(data.get("data", "")))
        if not result.success:
            await self.send_error(result.error_message, result.error_kind.value)

    async def resize(self, data: dict) -> None:
        try:
            cols = int(data.get("cols", 80))
            rows = int(data.get("rows", 24))
        except (TypeError, ValueError):
            await self.send_error("cols and rows must be integers", ErrorKind.CONFIG_INVALID.value)
            return

        result = await self.registry.resize_terminal(self.client_id, cols, rows)
        if not result.success:
            logger.warning("Failed to resize terminal for %s: %s", self.client_id, result.error_message)

    async def disconnect(self) -> None:
        logger.info("Client %s requesting disconnect", self.client_id)
        self._closing = True
        await self.registry.disconnect_session(self.client_id)
        await self.send({"type": "disconnected", "message": "Disconnected from SSH server"})

    async def release(self) -> None:
        """Tear down any session owned by this client."""
        self._closing = True
        self._ready.set()
        await self.registry.disconnect_session(self.client_id)


@router.websocket("/ws/ssh")
async def ssh_websocket(websocket: WebSocket, registry: RegistryDep):
    """WebSocket endpoint for SSH sessions.

    Protocol (JSON text frames):
    - Client messages:
      - {"type": "connect", "host": ..., "port": 22, "username": ..., "password": ...}
      - {"type": "input", "data": "ls\\n"}
      - {"type": "resize", "cols": 80, "rows": 24}
      - {"type": "disconnect"}
      - {"type": "ping"}
    - Server messages:
      - {"type": "connected", "session_id": ..., "connected_at": ..., "message": ...}
      - {"type": "output", "data": "..."}
      - {"type": "error", "message": "...", "kind": "..."}
      - {"type": "disconnected", "message": "..."}
      - {"type": "pong"}
    """
    await websocket.accept()

    channel = ClientChannel(websocket, registry)
    logger.info("Client %s connected", channel.client_id)

    try:
        while True:
            message = await websocket.receive_text()

            try:
                data = json.loads(message)
            except json.JSONDecodeError:
                await channel.send_error("Message is not valid JSON", ErrorKind.CONFIG_INVALID.value)
                continue

            if not isinstance(data, dict):
                await channel.send_error("Message must be a JSON object", ErrorKind.CONFIG_INVALID.value)
                continue

            await _handle_message(channel, data)

    except WebSocketDisconnect:
        pass
    finally:
        logger.info("Client %s disconnected", channel.client_id)
        await channel.release()


async def _handle_message(channel: ClientChannel, data: dict) -> None:
    """Dispatch a client message by type."""
    msg_type = data.get("type")

    if msg_type == "connect":
        await channel.connect(data)
    elif msg_type == "input":
        await channel.input(data)
    elif msg_type == "resize":
        await channel.resize(data)
    elif msg_type == "disconnect":
        await channel.disconnect()
    elif msg_type == "ping":
        await channel.send({"type": "pong"})
    else:
        await channel.send_error(f"Unknown message type: {msg_type}", ErrorKind.CONFIG_INVALID.value)
