"""
RAPID Dispatch Console - REST API Routes

Endpoints for console management, call control and system health.
Live state streaming is handled separately via WebSocket.

Architecture:
    Every console operation goes through that console's
    CallSessionController, looked up in the ConsoleStore held on app.state.
    Guarded no-op operations are not errors: they return applied=False
    with the unchanged console snapshot.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from dispatch_console import __version__
from dispatch_console.audio.codec import decode_base64_audio
from dispatch_console.config import Settings
from dispatch_console.core.console_store import ConsoleStore
from dispatch_console.core.controller import CallSessionController
from dispatch_console.core.logging import LogContext, mask_id
from dispatch_console.core.scenarios import SIMULATION_SCENARIOS
from dispatch_console.core.types import LogEntryType

from .schemas import (
    ActionResponse,
    ConsoleCreateResponse,
    ConsoleSnapshot,
    HealthResponse,
    LogEntrySchema,
    OverrideRequest,
    RespondRequest,
    ScenarioSchema,
    SimulationRequest,
    UploadRequest,
    VoiceSampleRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["api"])


# =============================================================================
# Dependencies
# =============================================================================

def get_store(request: Request) -> ConsoleStore:
    """Dependency to get the console store from app state."""
    return request.app.state.console_store


def get_settings(request: Request) -> Settings:
    """Dependency to get settings from app state."""
    return request.app.state.settings


async def get_console(
    console_id: str,
    store: ConsoleStore = Depends(get_store),
) -> CallSessionController:
    """Dependency resolving the console addressed by the path."""
    return await store.get_or_raise(console_id)


def _action(applied: bool, controller: CallSessionController) -> ActionResponse:
    return ActionResponse(
        applied=applied,
        console=ConsoleSnapshot.from_domain(controller.snapshot()),
    )


# =============================================================================
# Health & Catalogue
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(
    store: ConsoleStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """
    System health check.

    Reports the configured collaborator backends and the number of live
    consoles.
    """
    components = {
        "api": "operational",
        "classifier": settings.classifier_backend,
        "transcription": settings.transcription_backend,
        "synthesis": settings.synthesis_backend,
        "recognizer": settings.recognizer_backend,
        "audio_output": settings.audio_output_backend,
    }

    return HealthResponse(
        status="healthy",
        components=components,
        active_consoles=len(store),
        version=__version__,
    )


@router.get("/scenarios", response_model=List[ScenarioSchema])
async def list_scenarios():
    """Built-in scripted calls available for simulation."""
    return [ScenarioSchema.from_domain(s) for s in SIMULATION_SCENARIOS]


# =============================================================================
# Console Management
# =============================================================================

@router.post(
    "/consoles",
    response_model=ConsoleCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_console(store: ConsoleStore = Depends(get_store)):
    """
    Create an operator console.

    Connect to the returned WebSocket URL to receive live snapshots.
    """
    controller = await store.create()
    return ConsoleCreateResponse(
        console_id=controller.console_id,
        websocket_url=f"/ws/consoles/{controller.console_id}",
        console=ConsoleSnapshot.from_domain(controller.snapshot()),
    )


@router.get("/consoles/{console_id}", response_model=ConsoleSnapshot)
async def get_console_snapshot(controller: CallSessionController = Depends(get_console)):
    return ConsoleSnapshot.from_domain(controller.snapshot())


@router.delete("/consoles/{console_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_console(
    console_id: str,
    store: ConsoleStore = Depends(get_store),
):
    """Close a console and release its devices."""
    await store.get_or_raise(console_id)
    await store.remove(console_id)


@router.get("/consoles/{console_id}/logs", response_model=List[LogEntrySchema])
async def get_console_logs(
    type: Optional[LogEntryType] = Query(default=None, description="Filter by entry type"),
    controller: CallSessionController = Depends(get_console),
):
    """Operator log, newest first."""
    return [LogEntrySchema.from_domain(e) for e in controller.events.entries(type)]


# =============================================================================
# Call Control
# =============================================================================

@router.post("/consoles/{console_id}/simulation", response_model=ActionResponse)
async def start_simulation(
    body: SimulationRequest,
    controller: CallSessionController = Depends(get_console),
):
    with LogContext(console_id=controller.console_id):
        logger.info("Simulation requested: %s", body.scenario_id)
        applied = await controller.start_simulation(body.scenario_id)
    return _action(applied, controller)


@router.post("/consoles/{console_id}/microphone", response_model=ActionResponse)
async def start_microphone(controller: CallSessionController = Depends(get_console)):
    applied = await controller.start_microphone()
    return _action(applied, controller)


@router.post("/consoles/{console_id}/upload", response_model=ActionResponse)
async def start_upload(
    body: UploadRequest,
    controller: CallSessionController = Depends(get_console),
):
    """
    Start a call from a recorded file.

    The file is transcribed and replayed sentence by sentence. A failed
    transcription leaves the console idle (applied=False).
    """
    audio = decode_base64_audio(body.audio_base64)
    with LogContext(console_id=controller.console_id):
        logger.info("Upload received: %d bytes (%s)", len(audio), body.mime_type)
        applied = await controller.start_upload(audio, body.mime_type, body.filename)
    return _action(applied, controller)


@router.post("/consoles/{console_id}/voice-sample", response_model=ActionResponse)
async def play_voice_sample(
    body: VoiceSampleRequest,
    controller: CallSessionController = Depends(get_console),
):
    applied = await controller.play_voice_sample(body.scenario_id)
    return _action(applied, controller)


@router.post("/consoles/{console_id}/stop-capture", response_model=ActionResponse)
async def stop_capture(controller: CallSessionController = Depends(get_console)):
    applied = await controller.stop_capture()
    return _action(applied, controller)


@router.post("/consoles/{console_id}/takeover", response_model=ActionResponse)
async def takeover(controller: CallSessionController = Depends(get_console)):
    applied = await controller.takeover()
    return _action(applied, controller)


@router.post("/consoles/{console_id}/respond", response_model=ActionResponse)
async def respond(
    body: RespondRequest,
    controller: CallSessionController = Depends(get_console),
):
    applied = await controller.respond(body.text)
    return _action(applied, controller)


@router.post("/consoles/{console_id}/override", response_model=ActionResponse)
async def override(
    body: OverrideRequest,
    controller: CallSessionController = Depends(get_console),
):
    applied = controller.override(body.service)
    return _action(applied, controller)


@router.post("/consoles/{console_id}/dispatch", response_model=ActionResponse)
async def dispatch(controller: CallSessionController = Depends(get_console)):
    applied = await controller.dispatch()
    if applied:
        logger.info("Console %s dispatched", mask_id(controller.console_id))
    return _action(applied, controller)


@router.post("/consoles/{console_id}/reset", response_model=ActionResponse)
async def reset(controller: CallSessionController = Depends(get_console)):
    applied = await controller.reset()
    return _action(applied, controller)
