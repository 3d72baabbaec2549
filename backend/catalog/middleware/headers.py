"""
Catalog Backend: Header Injection Stages
========================================

CORSStage:
    Permissive by default (any origin). With an explicit origin list, the
    request Origin is echoed when listed and `Vary: Origin` is added.
    Preflight requests (OPTIONS + Access-Control-Request-Method) are answered
    with 204 directly.

SecurityHeadersStage:
    Fixed hardening headers on every response. Content-Security-Policy is
    never set.
"""

from typing import Iterable, Optional

from starlette.requests import Request
from starlette.responses import Response

from catalog.middleware.pipeline import Stage, StageContext


class CORSStage(Stage):
    name = "cors"

    ALLOW_METHODS = "GET,HEAD,PUT,PATCH,POST,DELETE"

    def __init__(self, allow_origins: Iterable[str] = ("*",)):
        origins = set(allow_origins) or {"*"}
        self.allow_all = "*" in origins
        self.allow_origins = origins

    def _allowed_origin(self, request: Request) -> Optional[str]:
        if self.allow_all:
            return "*"
        origin = request.headers.get("origin")
        if origin in self.allow_origins:
            return origin
        return None

    async def on_request(self, request: Request, ctx: StageContext) -> Optional[Response]:
        if request.method != "OPTIONS" or "access-control-request-method" not in request.headers:
            return None

        headers = {"Access-Control-Allow-Methods": self.ALLOW_METHODS}
        requested_headers = request.headers.get("access-control-request-headers")
        if requested_headers:
            headers["Access-Control-Allow-Headers"] = requested_headers
        response = Response(status_code=204, headers=headers)
        if requested_headers:
            response.headers.add_vary_header("Access-Control-Request-Headers")
        return response

    def on_response(self, request: Request, response: Response, ctx: StageContext) -> None:
        allowed = self._allowed_origin(request)
        if allowed is not None:
            response.headers["Access-Control-Allow-Origin"] = allowed
        if not self.allow_all:
            response.headers.add_vary_header("Origin")


class SecurityHeadersStage(Stage):
    name = "security_headers"

    HEADERS = {
        "Cross-Origin-Opener-Policy": "same-origin",
        "Cross-Origin-Resource-Policy": "same-origin",
        "Origin-Agent-Cluster": "?1",
        "Referrer-Policy": "no-referrer",
        "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
        "X-Content-Type-Options": "nosniff",
        "X-DNS-Prefetch-Control": "off",
        "X-Download-Options": "noopen",
        "X-Frame-Options": "SAMEORIGIN",
        "X-Permitted-Cross-Domain-Policies": "none",
        "X-XSS-Protection": "0",
    }

    def on_response(self, request: Request, response: Response, ctx: StageContext) -> None:
        for name, value in self.HEADERS.items():
            response.headers[name] = value
        if "x-powered-by" in response.headers:
            del response.headers["x-powered-by"]
