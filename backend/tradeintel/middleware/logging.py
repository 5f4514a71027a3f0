"""Request logging middleware with structured JSON output and request ID tracing.

The request id is bound to a context variable for the whole request, so
pipeline, adapter and registry log records emitted while serving it carry
``request_id`` (see ``RequestIdLogFilter``). Pipeline endpoints leave their
run ids and synthesized stages on ``request.state``; the access line reports
them next to the status and duration.
"""

import json
import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("tradeintel.access")

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdLogFilter(logging.Filter):
    """Stamps ``record.request_id`` with the id of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get()
        return True


def record_pipeline_runs(request: Request, runs) -> None:
    """Remember which pipeline runs a request produced, for the access log."""
    run_ids = getattr(request.state, "run_ids", [])
    synthesized = set(getattr(request.state, "synthesized_stages", []))
    for run in runs:
        run_ids.append(str(run.run_id))
        synthesized.update(stage.value for stage in run.synthesized_stages)
    request.state.run_ids = run_ids
    request.state.synthesized_stages = sorted(synthesized)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        token = request_id_ctx.set(request_id)
        start_time = time.perf_counter()

        request.state.request_id = request_id

        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)

        duration_ms = round((time.perf_counter() - start_time) * 1000, 1)

        log_data = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": duration_ms,
        }
        run_ids = getattr(request.state, "run_ids", None)
        if run_ids:
            log_data["run_ids"] = run_ids
            log_data["synthesized_stages"] = request.state.synthesized_stages
        logger.info(json.dumps(log_data))

        response.headers["X-Request-ID"] = request_id

        return response
