"""Request context for catalog API calls.

Every request gets a request id (taken from ``X-Request-ID`` or
generated) and, when the caller sent ``X-Actor-ID``, an actor id. Both
are bound into the structlog context so history writes and storage
failures logged while serving the request carry them.
"""

import time
from typing import Callable
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from catalog_service.api.deps import ACTOR_HEADER
from catalog_service.domain.exceptions import ErrorCode

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request and actor ids to the log context and time the call.

    An exception no handler claimed is answered with a 500 carrying the
    ``STORAGE`` error code, the same shape a failed store produces.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        actor_id = request.headers.get(ACTOR_HEADER, "").strip() or None
        request.state.request_id = request_id

        context = {"request_id": request_id}
        if actor_id:
            context["actor_id"] = actor_id
        structlog.contextvars.bind_contextvars(**context)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error", method=request.method, path=request.url.path)
            response = JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error_code": ErrorCode.STORAGE.value,
                    "message": "The request could not be completed",
                    "details": {},
                    "request_id": request_id,
                },
            )
        finally:
            structlog.contextvars.unbind_contextvars(*context)

        logger.info(
            "Catalog request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            request_id=request_id,
            actor_id=actor_id,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def setup_middleware(app: FastAPI) -> None:
    """Install the request context middleware on the app."""
    app.add_middleware(RequestContextMiddleware)
