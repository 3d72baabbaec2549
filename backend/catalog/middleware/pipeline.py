"""
Catalog Backend: Admission Pipeline Runner
==========================================

What:  Runs the ordered admission stages around route dispatch.
How:   A single Starlette BaseHTTPMiddleware whose dispatch() walks the stage
       list:

           for stage in stages:
               response = await stage.on_request(request, ctx)
               if response: break            # short-circuit
           else:
               response = await call_next(request)
           for stage in reversed(ran):
               stage.on_response(request, response, ctx)

       An exception from on_request, or one that escapes route dispatch, is
       forwarded to error_response(), the generic error responder, so the
       on_response hooks run for every request.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response

from catalog.static import is_api_path

logger = logging.getLogger(__name__)


@dataclass
class StageContext:
    """Per-request state shared by the stages of one pipeline run."""
    started_at: float = field(default_factory=time.perf_counter)
    json_body: Any = None
    decision: Any = None


class Stage:
    """
    One step of the admission pipeline.

    on_request returns None to pass control on, or a Response to answer the
    request immediately. on_response may adjust the outgoing response.
    """

    name = "stage"

    async def on_request(self, request: Request, ctx: StageContext) -> Optional[Response]:
        return None

    def on_response(self, request: Request, response: Response, ctx: StageContext) -> None:
        return None


def error_response(request: Request, exc: Exception) -> Response:
    """
    Generic error responder for failures inside the pipeline.

    API paths get a JSON body with an `error` field; everything else gets
    plain text. Details are logged, never returned.
    """
    logger.error(
        "Admission pipeline error on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
    )
    if is_api_path(request.url.path):
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})
    return PlainTextResponse("Internal Server Error", status_code=500)


class AdmissionPipelineMiddleware(BaseHTTPMiddleware):
    """Executes `stages` in order for every request."""

    def __init__(self, app, stages: Sequence[Stage] = ()):
        super().__init__(app)
        self.stages = list(stages)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        ctx = StageContext()
        ran: List[Stage] = []
        response: Optional[Response] = None

        for stage in self.stages:
            ran.append(stage)
            try:
                response = await stage.on_request(request, ctx)
            except Exception as exc:
                response = error_response(request, exc)
            if response is not None:
                break

        if response is None:
            try:
                response = await call_next(request)
            except Exception as exc:
                response = error_response(request, exc)

        for stage in reversed(ran):
            stage.on_response(request, response, ctx)

        return response
