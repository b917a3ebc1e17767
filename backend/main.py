"""
RAPID Dispatch Console - Backend Entrypoint

FastAPI application factory and server configuration.
Run with: uvicorn main:app --reload  (from the backend/ directory)
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dispatch_console import __version__
from dispatch_console.api import routes, websocket
from dispatch_console.config import Settings, get_settings
from dispatch_console.core.console_store import ConsoleStore
from dispatch_console.core.exceptions import DispatchConsoleError
from dispatch_console.core.logging import setup_structured_logging

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Application factory."""
    settings = settings or get_settings()

    setup_structured_logging(
        level=settings.app_log_level,
        json_format=settings.log_json_format,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Startup:
            - Create the console store (controllers are built per console)

        Shutdown:
            - Close every console, releasing capture and output devices
        """
        # === Startup ===
        logger.info("RAPID Dispatch Console starting in %s mode", settings.app_env)

        app.state.settings = settings
        app.state.console_store = ConsoleStore(settings)

        logger.info(
            "Backends: classifier=%s, transcription=%s, synthesis=%s, recognizer=%s, output=%s",
            settings.classifier_backend,
            settings.transcription_backend,
            settings.synthesis_backend,
            settings.recognizer_backend,
            settings.audio_output_backend,
        )
        logger.info("Privacy: anonymize_logs=%s", settings.anonymize_logs)

        yield

        # === Shutdown ===
        logger.info("RAPID Dispatch Console shutting down")
        await app.state.console_store.close_all()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="RAPID Dispatch Console",
        description="Emergency-call triage and dispatch operator console",
        version=__version__,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url="/redoc" if settings.app_debug else None,
        lifespan=lifespan,
    )

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Errors ---
    @app.exception_handler(DispatchConsoleError)
    async def console_error_handler(request: Request, exc: DispatchConsoleError):
        logger.warning("%s on %s: %s", exc.code, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "message": exc.message, "details": exc.details},
        )

    # --- Routes ---
    app.include_router(routes.router, prefix="/api")
    app.include_router(websocket.router)

    # --- Health check at root ---
    @app.get("/")
    async def root():
        """Root health check."""
        return {
            "service": "RAPID Dispatch Console",
            "status": "operational",
            "version": __version__,
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "main:app",
        host=_settings.backend_host,
        port=_settings.backend_port,
        reload=_settings.app_debug,
    )
