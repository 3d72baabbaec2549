"""
Catalog Backend: Rate-Limit / Bot Decision Stage
================================================

What:  Consults the decision service for every request and turns denials
       into 429/403 responses.
How:   Each request consumes one unit (`requested=1`).

Verdict Mapping:
    denied, RATE_LIMIT reason       → 429 {"error": "Too Many Requests"}
    denied, BOT reason              → 403 {"error": "Bot access denied"}
    denied, any other reason        → 403 {"error": "Forbidden"}
    allowed, spoofed bot in results → 403 {"error": "Spoofed bot detected"}
    otherwise                       → pass

Development Bypass:
    Outside production, a User-Agent containing DEV_BYPASS_USER_AGENT
    (default "postman") skips the decision service. This trusts a
    client-supplied header and is never honoured in production.

Failures:
    DecisionServiceError propagates to the pipeline runner, which answers
    with the generic error responder. The request is not admitted.
"""

import logging
from typing import Optional

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from catalog.config import Settings
from catalog.middleware.pipeline import Stage, StageContext
from catalog.services.decision import Decision, DecisionService

logger = logging.getLogger(__name__)


def _deny(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error})


class DecisionStage(Stage):
    name = "decision"

    REQUESTED_UNITS = 1

    def __init__(self, decision_service: DecisionService, settings: Settings):
        self.decision_service = decision_service
        self.is_production = settings.is_production
        self.bypass_signature = settings.dev_bypass_user_agent.strip().lower()

    def is_bypassed(self, request: Request) -> bool:
        if self.is_production or not self.bypass_signature:
            return False
        user_agent = request.headers.get("user-agent", "").lower()
        return self.bypass_signature in user_agent

    async def on_request(self, request: Request, ctx: StageContext) -> Optional[Response]:
        if self.is_bypassed(request):
            logger.debug("Decision bypassed for test tool: %s %s", request.method, request.url.path)
            return None

        decision = await self.decision_service.protect(request, requested=self.REQUESTED_UNITS)
        ctx.decision = decision
        return self.verdict(decision)

    @staticmethod
    def verdict(decision: Decision) -> Optional[Response]:
        """Map a decision to a denial response, or None to admit."""
        if decision.is_denied():
            if decision.reason.is_rate_limit():
                return _deny(429, "Too Many Requests")
            if decision.reason.is_bot():
                return _deny(403, "Bot access denied")
            return _deny(403, "Forbidden")

        if any(result.reason.is_bot() and result.reason.is_spoofed() for result in decision.results):
            return _deny(403, "Spoofed bot detected")

        return None
