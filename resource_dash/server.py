"""HTTP application factory."""
from __future__ import annotations

import asyncio
import contextlib
from functools import wraps
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import FileResponse, JSONResponse, Response
from starlette.routing import Mount, Route
from starlette.staticfiles import StaticFiles

from resource_dash.context import DashboardContext
from resource_dash.errors import UnsupportedFormat
from resource_dash.export import CSV, build_export, resolve_format
from resource_dash.scheduler import Ticker
from resource_dash.snapshot import EXPORT_TOP_PROCESSES, LIVE_TOP_PROCESSES

logger = logging.getLogger(__name__)

DEFAULT_LOG_LINES = 200

Endpoint = Callable[[Request], Awaitable[Response]]


def json_errors(endpoint: Endpoint) -> Endpoint:
    """Turn any unexpected failure into a generic 500 for this request only.

    The traceback goes to the operational log; the client sees no details.
    """

    @wraps(endpoint)
    async def wrapper(request: Request) -> Response:
        try:
            return await endpoint(request)
        except Exception:
            logger.exception("%s %s failed", request.method, request.url.path)
            return JSONResponse({"error": "Internal server error"}, status_code=500)

    return wrapper


def _context(request: Request) -> DashboardContext:
    return request.app.state.context


def parse_positive_int(value: str | None, default: int) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


@json_errors
async def get_stats(request: Request) -> Response:
    stats = await _context(request).aggregator.build_snapshot(LIVE_TOP_PROCESSES)
    return JSONResponse(stats.to_dict())


@json_errors
async def get_processes(request: Request) -> Response:
    processes = await _context(request).aggregator.top_processes_only(LIVE_TOP_PROCESSES)
    return JSONResponse([proc.to_dict() for proc in processes])


@json_errors
async def get_logs(request: Request) -> Response:
    n = parse_positive_int(request.query_params.get("n"), DEFAULT_LOG_LINES)
    lines = await asyncio.to_thread(_context(request).appender.read_recent_lines, n)
    return JSONResponse(lines)


@json_errors
async def get_snapshot(request: Request) -> Response:
    requested = request.query_params.get("fmt", CSV)
    try:
        fmt = resolve_format(requested)
    except UnsupportedFormat:
        logger.debug("Unknown export format %r; using csv.", requested)
        fmt = CSV
    stats = await _context(request).aggregator.build_snapshot(EXPORT_TOP_PROCESSES)
    export = await asyncio.to_thread(build_export, stats, fmt)
    return Response(
        export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f"attachment; filename={export.filename}"},
    )


@json_errors
async def get_thresholds(request: Request) -> Response:
    return JSONResponse(_context(request).thresholds.get().to_dict())


@json_errors
async def post_thresholds(request: Request) -> Response:
    payload: Any
    try:
        payload = await request.json()
    except ValueError:
        payload = {}
    config = _context(request).thresholds.update(payload)
    return JSONResponse(config.to_dict())


async def get_index(request: Request) -> Response:
    index = _context(request).config.server.static_dir / "index.html"
    if not index.is_file():
        return JSONResponse({"error": "Not found"}, status_code=404)
    return FileResponse(index)


def create_app(context: DashboardContext, start_scheduler: bool = True) -> Starlette:
    """Create the dashboard application.

    With ``start_scheduler`` the app's lifespan runs the periodic log writer.
    """

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        ticker: Ticker | None = None
        if start_scheduler:
            ticker = Ticker(
                context.config.log.interval_s, context.snapshot_logger().tick
            )
            ticker.start()
        logger.info("Resource Dash starting")
        try:
            yield
        finally:
            if ticker is not None:
                await ticker.stop()
            context.close()
            logger.info("Resource Dash shutting down")

    routes = [
        Route("/", endpoint=get_index, methods=["GET"]),
        Route("/api/stats", endpoint=get_stats, methods=["GET"]),
        Route("/api/processes", endpoint=get_processes, methods=["GET"]),
        Route("/api/logs", endpoint=get_logs, methods=["GET"]),
        Route("/api/snapshot", endpoint=get_snapshot, methods=["GET"]),
        Route("/api/thresholds", endpoint=get_thresholds, methods=["GET"]),
        Route("/api/thresholds", endpoint=post_thresholds, methods=["POST"]),
        Mount(
            "/static",
            app=StaticFiles(directory=context.config.server.static_dir, check_dir=False),
            name="static",
        ),
    ]
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=context.config.server.cors_origins,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )
    ]
    app = Starlette(routes=routes, middleware=middleware, lifespan=lifespan)
    # Route handlers reach shared state through the app
    app.state.context = context
    return app
