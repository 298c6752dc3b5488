# groovelib/server.py
import functools
import time
from json import JSONDecodeError

from anyio import CapacityLimiter, to_thread
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from groovelib.config import Settings, load_settings
from groovelib.logs import get_request_id, log_event, serialize_error
from groovelib.notifier import EVENTS_ROUTE, WorkspaceChangeStream
from groovelib.parsing import ParseError, parse_event_query, parse_resolve_body
from groovelib.resolution import resolve_workspace_root

RESOLVE_ROUTE = "api.groove.resolve"
# Resolution threads, kept apart from the shared pool native watches occupy
RESOLVER_THREADS = 8


def _error_response(status, request_id, error):
    return JSONResponse(
        {"ok": False, "requestId": request_id, "error": error},
        status_code=status,
        headers={"X-Request-Id": request_id},
    )


def create_app(settings: Settings = None, watcher=None) -> FastAPI:
    """Build the HTTP app. `watcher` overrides the native watch factory (None keeps watchfiles)."""
    settings = settings or load_settings()
    app = FastAPI(title="groove-watch")

    async def run_resolver(query):
        limiter = getattr(app.state, "resolver_limiter", None)
        if limiter is None:
            limiter = app.state.resolver_limiter = CapacityLimiter(RESOLVER_THREADS)
        return await to_thread.run_sync(
            functools.partial(resolve_workspace_root, query, settings=settings),
            limiter=limiter,
        )

    @app.post("/api/groove/resolve")
    async def resolve(request: Request):
        request_id = get_request_id(request.headers.get("x-request-id"))
        started = time.monotonic()
        log_event("info", RESOLVE_ROUTE, request_id, "request.received", method="POST")

        try:
            body = await request.json()
        except (JSONDecodeError, UnicodeDecodeError):
            log_event("warn", RESOLVE_ROUTE, request_id, "validation.failed", reason="invalid-json")
            return _error_response(400, request_id, "Request body must be valid JSON.")

        query = parse_resolve_body(body)
        if isinstance(query, ParseError):
            log_event(
                "warn", RESOLVE_ROUTE, request_id, "validation.failed",
                reason="invalid-body", message=query.message,
            )
            return _error_response(400, request_id, query.message)

        log_event(
            "debug", RESOLVE_ROUTE, request_id, "workspace.resolve.attempt",
            mode="auto" if query.workspace_root is None else "override",
            knownWorktreesCount=len(query.known_worktrees),
        )
        resolution = await run_resolver(query)
        if not resolution.ok:
            log_event(
                "warn", RESOLVE_ROUTE, request_id, "workspace.resolve.failed",
                status=400, message=resolution.message,
            )
            return _error_response(400, request_id, resolution.message)

        log_event(
            "info", RESOLVE_ROUTE, request_id, "request.completed",
            status=200, durationMs=int((time.monotonic() - started) * 1000),
        )
        return JSONResponse(
            {"ok": True, "requestId": request_id, "workspaceRoot": resolution.workspace_root},
            headers={"X-Request-Id": request_id},
        )

    @app.get("/api/groove/events")
    async def events(request: Request):
        request_id = get_request_id(request.headers.get("x-request-id"))
        log_event(
            "info", EVENTS_ROUTE, request_id, "request.received",
            method="GET", path=request.url.path,
        )

        stream = None
        try:
            query = parse_event_query(request.query_params)
            if isinstance(query, ParseError):
                log_event(
                    "warn", EVENTS_ROUTE, request_id, "validation.failed",
                    reason="invalid-query", status=400, message=query.message,
                )
                return _error_response(400, request_id, query.message)

            resolution = await run_resolver(query)
            if not resolution.ok:
                log_event(
                    "warn", EVENTS_ROUTE, request_id, "workspace.resolve.failed",
                    status=400, message=resolution.message,
                )
                return _error_response(400, request_id, resolution.message)

            kwargs = {}
            if watcher is not None:
                kwargs["watcher"] = watcher
            stream = WorkspaceChangeStream(
                resolution.workspace_root,
                query.known_worktrees,
                request_id=request_id,
                settings=settings,
                **kwargs,
            )
            await stream.start(is_disconnected=request.is_disconnected)
        except Exception as e:
            if stream is not None:
                stream.close("internal-error")
            log_event(
                "error", EVENTS_ROUTE, request_id, "request.exception",
                status=500, **serialize_error(e),
            )
            return _error_response(500, request_id, "Unexpected error while opening groove events stream.")

        return StreamingResponse(
            stream.events(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache, no-transform",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
                "X-Request-Id": request_id,
            },
        )

    return app
