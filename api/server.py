"""FastAPI server for ERP forensics runs.

Main entry point for the API server:

    uvicorn api.server:create_app --factory --port 8000
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import health, progress
from core.config import Settings, get_settings
from core.observability.logging import configure_logging, get_logger
from core.progress import EventType, ProgressBus

logger = get_logger(__name__)


def create_app(bus: Optional[ProgressBus] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        bus: Progress bus shared with extraction and migration runs
            (a new one is created at startup when omitted)
        settings: Settings to use instead of the environment
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        resolved = app.state.settings
        configure_logging(resolved.log_level, json_format=resolved.json_logs)
        if app.state.bus is None:
            app.state.bus = ProgressBus(max_history=resolved.progress_history)
        app.state.bus.emit(EventType.SYSTEM_STATUS, {"status": "started", "app": resolved.app_name})
        logger.info(f"{resolved.app_name} API starting up ({resolved.migration_mode} mode)")

        yield

        app.state.bus.emit(EventType.SYSTEM_STATUS, {"status": "stopping", "app": resolved.app_name})
        logger.info(f"{resolved.app_name} API shutting down")

    app = FastAPI(
        title="ERP Forensics API",
        description="Health probes and live progress of forensic extraction and migration runs",
        version=health.VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings or get_settings()
    app.state.bus = bus

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(progress.router, prefix="/progress", tags=["Progress"])

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.server:create_app", factory=True, host="0.0.0.0", port=8000)
