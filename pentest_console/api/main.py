"""FastAPI application serving the console JSON API and, optionally, the built web UI."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

import logfire
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response

from ..config import CONFIG, reload_config
from ..core import ServiceContainer, build_container
from ..logger import configure_logging, log
from .routes import auth, configs, settings, workflows, worker


logger = logging.getLogger(__name__)

API_TITLE = "Pentest Console API"
API_VERSION = "1.0.0"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
HSTS_HEADER = "max-age=31536000; includeSubDomains"


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[str]:
    """Render pydantic errors as ``"field: message"`` strings."""

    formatted: List[str] = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        field = ".".join(location) or "body"
        formatted.append(f"{field}: {error.get('msg', 'invalid value')}")
    return formatted


def _apply_security_headers(response: Response, is_production: bool) -> Response:
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    if is_production:
        response.headers.setdefault("Strict-Transport-Security", HSTS_HEADER)
    return response


def _configure_cors(api_app: FastAPI, origins: List[str]) -> None:
    if not origins:
        return

    api_app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _configure_logfire(api_app: FastAPI, cfg: Any) -> None:
    if cfg.enable_logfire and cfg.logfire_token:
        logfire.configure(token=cfg.logfire_token, console=False)
        logfire.instrument_fastapi(api_app)


def _mount_web_ui(api_app: FastAPI, dist_dir: Optional[str]) -> None:
    """Serve the built single-page app, falling back to index.html for client-side routes."""

    if not dist_dir:
        return
    root = Path(dist_dir).resolve()
    index_file = root / "index.html"
    if not index_file.is_file():
        log(f"[api] web UI directory {root} has no index.html; not serving it")
        return

    @api_app.get("/{full_path:path}", include_in_schema=False)
    def serve_web_ui(full_path: str) -> FileResponse:
        if full_path == "api" or full_path.startswith("api/"):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

        candidate = (root / full_path).resolve()
        if full_path and candidate.is_file() and candidate.is_relative_to(root):
            return FileResponse(candidate)
        return FileResponse(index_file)


def create_app(services: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        services: Pre-built service container; when omitted one is built from
            ``CONFIG`` on startup

    Returns:
        The configured FastAPI application
    """

    cfg = services.config if services is not None else CONFIG

    @asynccontextmanager
    async def lifespan(api_app: FastAPI):
        if api_app.state.services is None:
            api_app.state.services = build_container()
        container: ServiceContainer = api_app.state.services
        if container.config.session_secret_generated:
            if container.config.is_production:
                logger.warning("SESSION_SECRET is not set; sessions will not survive a restart")
            else:
                log("[api] SESSION_SECRET not set, using a per-process secret")
        await container.startup()
        log("[api] console ready", temporal=container.workflows.connected)
        try:
            yield
        finally:
            await container.shutdown()
            log("[api] console stopped")

    api_app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        description="JSON API for launching and monitoring pentest pipeline runs.",
        lifespan=lifespan,
    )
    api_app.state.services = services

    @api_app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Invalid request body", "errors": format_validation_errors(exc.errors())},
        )

    @api_app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        # Sent by the outer error middleware, which add_security_headers does not wrap.
        response = JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )
        return _apply_security_headers(response, cfg.is_production)

    @api_app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        return _apply_security_headers(await call_next(request), cfg.is_production)

    _configure_cors(api_app, list(cfg.cors_origins))

    @api_app.get("/api/health", tags=["health"])
    async def healthcheck(request: Request) -> Dict[str, Any]:
        """Public liveness check including engine and worker state."""

        container: Optional[ServiceContainer] = request.app.state.services
        if container is None:
            return {"status": "ok", "temporal": False, "worker": False}
        return {
            "status": "ok",
            "temporal": container.workflows.connected,
            "worker": container.worker.running,
        }

    api_app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    api_app.include_router(workflows.router, prefix="/api/workflows", tags=["workflows"])
    api_app.include_router(configs.router, prefix="/api/configs", tags=["configs"])
    api_app.include_router(worker.router, prefix="/api/worker", tags=["worker"])
    api_app.include_router(settings.router, prefix="/api/settings", tags=["settings"])

    _mount_web_ui(api_app, cfg.web_dist_dir)
    _configure_logfire(api_app, cfg)
    return api_app


load_dotenv()
reload_config()
configure_logging(CONFIG.log_level)
app = create_app()
