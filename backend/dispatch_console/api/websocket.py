"""
RAPID Dispatch Console - WebSocket Handlers

Live console stream for renderers.

Protocol:
    Client -> Server (text frames, JSON):
        {"type": "action", "action": "simulation", "scenario_id": "med-1"}
        {"type": "action", "action": "microphone"}
        {"type": "action", "action": "upload", "audio_base64": "...", "mime_type": "audio/wav"}
        {"type": "action", "action": "voice_sample", "scenario_id": "fire-1"}
        {"type": "action", "action": "stop_capture" | "takeover" | "dispatch" | "reset"}
        {"type": "action", "action": "respond", "text": "..."}
        {"type": "action", "action": "override", "service": "Fire & Rescue"}
        {"type": "ping"}

    Server -> Client:
        {"type": "connected", "console_id": "..."}
        {"type": "snapshot", "event": "...", "data": {...}}
        {"type": "action_result", "action": "...", "applied": true}
        {"type": "error", "code": "...", "message": "..."}
        {"type": "pong"}

A full snapshot is pushed on connect and after every change notification.
Bursts of notifications are coalesced into one snapshot.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from dispatch_console.audio.codec import decode_base64_audio
from dispatch_console.core.console_store import ConsoleStore
from dispatch_console.core.controller import CallSessionController
from dispatch_console.core.exceptions import DispatchConsoleError, ValidationError
from dispatch_console.core.logging import LogContext, mask_id

from .schemas import ConsoleSnapshot

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])

ActionHandler = Callable[[CallSessionController, Dict[str, Any]], Awaitable[bool]]


# =============================================================================
# Action Handlers
# =============================================================================

def _require(message: Dict[str, Any], field: str) -> str:
    value = message.get(field)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"Missing field: {field}")
    return value


async def _upload(controller: CallSessionController, message: Dict[str, Any]) -> bool:
    audio = decode_base64_audio(_require(message, "audio_base64"))
    return await controller.start_upload(
        audio,
        message.get("mime_type") or "audio/wav",
        message.get("filename") or "upload",
    )


async def _override(controller: CallSessionController, message: Dict[str, Any]) -> bool:
    return controller.override(_require(message, "service"))


ACTIONS: Dict[str, ActionHandler] = {
    "simulation": lambda c, m: c.start_simulation(_require(m, "scenario_id")),
    "microphone": lambda c, m: c.start_microphone(),
    "upload": _upload,
    "voice_sample": lambda c, m: c.play_voice_sample(_require(m, "scenario_id")),
    "stop_capture": lambda c, m: c.stop_capture(),
    "takeover": lambda c, m: c.takeover(),
    "respond": lambda c, m: c.respond(str(m.get("text", ""))),
    "override": _override,
    "dispatch": lambda c, m: c.dispatch(),
    "reset": lambda c, m: c.reset(),
}


async def handle_action(
    controller: CallSessionController,
    message: Dict[str, Any],
    websocket: WebSocket,
) -> None:
    """Run one control action and report its outcome."""
    action = message.get("action")
    handler = ACTIONS.get(action)
    if handler is None:
        await websocket.send_json({
            "type": "error",
            "code": "UNKNOWN_ACTION",
            "message": f"Unknown action: {action}",
        })
        return

    try:
        applied = await handler(controller, message)
    except DispatchConsoleError as e:
        logger.warning("Console action %s rejected: %s", action, e.message)
        await websocket.send_json({"type": "error", "code": e.code, "message": e.message})
        return

    await websocket.send_json({"type": "action_result", "action": action, "applied": applied})


# =============================================================================
# WebSocket Endpoint
# =============================================================================

async def _push_snapshots(
    controller: CallSessionController,
    events: "asyncio.Queue[str]",
    websocket: WebSocket,
) -> None:
    while True:
        event = await events.get()
        while not events.empty():
            event = events.get_nowait()
        snapshot = ConsoleSnapshot.from_domain(controller.snapshot())
        await websocket.send_json({
            "type": "snapshot",
            "event": event,
            "data": snapshot.model_dump(mode="json"),
        })


@router.websocket("/ws/consoles/{console_id}")
async def console_stream(websocket: WebSocket, console_id: str):
    """
    Live stream of one console.

    Pushes snapshots as the call evolves and accepts control actions.
    """
    store: ConsoleStore = websocket.app.state.console_store

    await websocket.accept()
    controller = await store.get(console_id)
    if controller is None:
        await websocket.send_json({
            "type": "error",
            "code": "CONSOLE_NOT_FOUND",
            "message": f"Console not found: {mask_id(console_id)}",
        })
        await websocket.close(code=4404)
        return

    events: "asyncio.Queue[str]" = asyncio.Queue()
    listener = events.put_nowait
    controller.add_listener(listener)
    pusher = asyncio.create_task(_push_snapshots(controller, events, websocket))

    logger.info("WebSocket connected: console=%s", mask_id(console_id))

    try:
        await websocket.send_json({"type": "connected", "console_id": console_id})
        events.put_nowait("connected")

        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError as e:
                logger.warning("Invalid JSON in WebSocket message (console=%s): %s", mask_id(console_id), e)
                await websocket.send_json({"type": "error", "code": "INVALID_JSON", "message": "Invalid JSON format"})
                continue

            msg_type = message.get("type") if isinstance(message, dict) else None
            if msg_type == "action":
                with LogContext(console_id=console_id):
                    await handle_action(controller, message, websocket)
            elif msg_type == "ping":
                await websocket.send_json({"type": "pong"})
            else:
                await websocket.send_json({
                    "type": "error",
                    "code": "UNKNOWN_MESSAGE",
                    "message": f"Unknown message type: {msg_type}",
                })

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected: console=%s", mask_id(console_id))
    except Exception as e:
        logger.error("WebSocket error (console=%s): %s", mask_id(console_id), e, exc_info=True)
    finally:
        controller.remove_listener(listener)
        pusher.cancel()
        try:
            await pusher
        except (asyncio.CancelledError, Exception):
            pass
