"""OhMyDashboard FastAPI application: routers, lifecycle and static bundle."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path, PurePosixPath

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from ohmydashboard import config
from ohmydashboard.db import connection
from ohmydashboard.observability import initialize as initialize_observability, shutdown as shutdown_observability
from ohmydashboard.reader import dashboard_reader
from ohmydashboard.routers.cache import cache_router
from ohmydashboard.routers.dashboard import dashboard_router

logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))
logger = logging.getLogger("ohmydashboard")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("OhMyDashboard backend starting up")
    initialize_observability(app)
    app.state.reader = dashboard_reader

    backend = dashboard_reader.backend
    logger.info(f"Reading OpenCode data from {backend.base_path} ({backend.kind})")

    yield

    logger.info("OhMyDashboard backend shutting down")
    shutdown_observability(app)
    await connection.close_connection()


def _is_under(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


def resolve_frontend_file(full_path: str, dist_dir: Path) -> Path:
    """Map a browser path onto the built bundle.

    Paths that look like assets must exist; anything else is a client-side
    route and gets ``index.html``.
    """
    root = dist_dir.resolve(strict=False)
    if "." in PurePosixPath(full_path).name:
        candidate = (root / full_path).resolve(strict=False)
        if _is_under(candidate, root) and candidate.is_file():
            return candidate
        raise HTTPException(status_code=404, detail="Not Found")

    index = root / "index.html"
    if not index.is_file():
        raise HTTPException(status_code=404, detail="Frontend bundle not built")
    return index


def create_app() -> FastAPI:
    app = FastAPI(
        title="OhMyDashboard API",
        description="Read-only monitoring API for OpenCode agent sessions",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Read-only API, so any origin may poll it.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(dashboard_router)
    app.include_router(cache_router)

    @app.get("/api/health")
    def health():
        """Health check endpoint."""
        backend = dashboard_reader.backend
        return {
            "status": "ok",
            "backend": backend.kind,
            "basePath": str(backend.base_path),
        }

    @app.get("/{full_path:path}", include_in_schema=False)
    def serve_frontend(full_path: str):
        if full_path == "api" or full_path.startswith("api/"):
            raise HTTPException(status_code=404, detail="Not Found")
        return FileResponse(resolve_frontend_file(full_path, config.DIST_DIR))

    return app


app = create_app()
