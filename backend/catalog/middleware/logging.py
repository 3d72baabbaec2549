"""
Catalog Backend: Access Logging Stage
=====================================

What:  One log line per request: method, path, status, latency, size.
How:   on_request records the start time; on_response emits the line on the
       `catalog.access` logger. The request and response are not modified.

Log Format:
    GET /api/products 200 3.412 ms - 187

    Level follows the status: 5xx → ERROR, 4xx → WARNING, otherwise INFO.
    When the decision stage ran, its conclusion and reason type are attached
    to the record as `decision` and `decision_reason`.
"""

import logging
import time
from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from catalog.middleware.pipeline import Stage, StageContext

logger = logging.getLogger("catalog.access")


class AccessLogStage(Stage):
    name = "access_log"

    async def on_request(self, request: Request, ctx: StageContext) -> Optional[Response]:
        ctx.started_at = time.perf_counter()
        return None

    def on_response(self, request: Request, response: Response, ctx: StageContext) -> None:
        duration_ms = (time.perf_counter() - ctx.started_at) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        decision = ctx.decision
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        logger.log(
            log_level,
            "%s %s %d %.3f ms - %s",
            request.method,
            request.url.path,
            status,
            duration_ms,
            response.headers.get("content-length", "-"),
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "duration_ms": round(duration_ms, 3),
                "client_ip": client_ip,
                "decision": decision.conclusion if decision is not None else None,
                "decision_reason": decision.reason.type if decision is not None else None,
            },
        )
