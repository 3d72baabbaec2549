"""
Catalog Backend: Rate-Limit / Bot Decision Service
==================================================

What:  The verdict source consulted by the admission pipeline's decision stage.
How:   `DecisionService.protect(request, requested=1)` returns a `Decision`
       (ALLOW or DENY, a reason, and the per-rule results).

Implementations:
    - RemoteDecisionService: hosted decision API reached over HTTPS (httpx)
    - LocalDecisionService:  in-process sliding-window limiter with
                             User-Agent bot heuristics, used when no
                             DECISION_SERVICE_KEY is configured

Remote Wire Format:
    POST {DECISION_SERVICE_URL}/v1/decide
    Authorization: Bearer {DECISION_SERVICE_KEY}
    {"ip": "...", "method": "GET", "path": "/api/products",
     "headers": {...}, "requested": 1}

    200 {"conclusion": "DENY",
         "reason": {"type": "RATE_LIMIT", "spoofed": false},
         "results": [{"conclusion": "DENY", "reason": {...}}]}
"""

import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, List, Optional

import httpx
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from starlette.requests import Request

from catalog.config import Settings
from catalog.exceptions import DecisionServiceError

logger = logging.getLogger(__name__)

ALLOW = "ALLOW"
DENY = "DENY"


# ══════════════════════════════════════════════════════════════════════════
# Decision Model
# ══════════════════════════════════════════════════════════════════════════

class DecisionReason(BaseModel):
    """Why a rule (or the overall decision) concluded the way it did."""
    type: str = Field(default="NONE", description="RATE_LIMIT, BOT, SHIELD, ERROR, NONE")
    spoofed: bool = Field(default=False, description="Bot claimed an identity it cannot prove")

    model_config = {"frozen": True}

    def is_rate_limit(self) -> bool:
        return self.type.upper() == "RATE_LIMIT"

    def is_bot(self) -> bool:
        return self.type.upper() == "BOT"

    def is_spoofed(self) -> bool:
        return self.is_bot() and self.spoofed


class RuleResult(BaseModel):
    conclusion: str = ALLOW
    reason: DecisionReason = Field(default_factory=DecisionReason)

    model_config = {"frozen": True}


class Decision(BaseModel):
    conclusion: str = ALLOW
    reason: DecisionReason = Field(default_factory=DecisionReason)
    results: List[RuleResult] = Field(default_factory=list)

    model_config = {"frozen": True}

    def is_denied(self) -> bool:
        return self.conclusion.upper() == DENY

    def is_allowed(self) -> bool:
        return not self.is_denied()


# ══════════════════════════════════════════════════════════════════════════
# Service Interface
# ══════════════════════════════════════════════════════════════════════════

class DecisionService(ABC):
    """
    Abstract verdict source for rate limiting and bot detection.

    Contract:
        - protect() returns a Decision; it never admits a request on failure
        - transport or protocol failures raise DecisionServiceError
        - `requested` is the number of rate-limit units the request consumes
    """

    @abstractmethod
    async def protect(self, request: Request, requested: int = 1) -> Decision:
        ...

    async def aclose(self) -> None:
        """Release held resources (HTTP connections). Called on shutdown."""
        return None


def client_ip(request: Request) -> str:
    return getattr(request.client, "host", "unknown") if request.client else "unknown"


# ══════════════════════════════════════════════════════════════════════════
# Remote Implementation
# ══════════════════════════════════════════════════════════════════════════

class RemoteDecisionService(DecisionService):
    """
    Client for the hosted decision API.

    One pooled httpx.AsyncClient per application. No retries: a failed call
    surfaces as DecisionServiceError and the pipeline fails closed.
    """

    # Forwarded to the decision API for fingerprinting; everything else
    # (cookies, authorization) stays local.
    FORWARDED_HEADERS = ("user-agent", "accept", "accept-language", "accept-encoding", "host")

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 2.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    async def protect(self, request: Request, requested: int = 1) -> Decision:
        payload = {
            "ip": client_ip(request),
            "method": request.method,
            "path": request.url.path,
            "headers": {
                name: request.headers[name]
                for name in self.FORWARDED_HEADERS
                if name in request.headers
            },
            "requested": requested,
        }
        try:
            response = await self._client.post("/v1/decide", json=payload)
            response.raise_for_status()
            return Decision.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            raise DecisionServiceError(
                context={"status_code": e.response.status_code}
            ) from e
        except httpx.HTTPError as e:
            raise DecisionServiceError(context={"error": str(e)}) from e
        except (ValueError, PydanticValidationError) as e:
            raise DecisionServiceError(
                message="Decision service returned an invalid verdict",
                context={"error": str(e)},
            ) from e

    async def aclose(self) -> None:
        await self._client.aclose()


# ══════════════════════════════════════════════════════════════════════════
# Local Implementation
# ══════════════════════════════════════════════════════════════════════════

class LocalDecisionService(DecisionService):
    """
    In-process rate limiter and bot detector.

    Rules, evaluated in order:
        1. Bot detection: empty User-Agent or a known automation client → DENY (BOT)
        2. Crawler verification: UA claims a search-engine crawler but the
           client IP is not verified → ALLOW, flagged as spoofed bot
        3. Sliding window: at most `max_requests` units per IP per `window`
           seconds → DENY (RATE_LIMIT) when exceeded

    State is per process. Multi-worker deployments should configure the
    remote service instead.
    """

    AUTOMATION_SIGNATURES = (
        "curl/", "wget/", "python-requests", "python-httpx", "aiohttp",
        "go-http-client", "scrapy", "httpclient", "libwww-perl", "headlesschrome",
    )
    CRAWLER_SIGNATURES = ("googlebot", "bingbot", "duckduckbot", "yandexbot", "applebot")
    # Admitted requests between sweeps of idle IP entries
    CLEANUP_INTERVAL = 1000

    def __init__(
        self,
        max_requests: int = 100,
        window: int = 60,
        verified_crawler_ips: frozenset = frozenset(),
    ):
        self.max_requests = max_requests
        self.window = window
        self.verified_crawler_ips = verified_crawler_ips
        # IP → timestamps of consumed units
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._admitted = 0

    async def protect(self, request: Request, requested: int = 1) -> Decision:
        ip = client_ip(request)
        user_agent = request.headers.get("user-agent", "").lower()
        results: List[RuleResult] = []

        # ── Bot detection ─────────────────────────────────────────────────
        if not user_agent or any(sig in user_agent for sig in self.AUTOMATION_SIGNATURES):
            reason = DecisionReason(type="BOT")
            logger.info("Bot detected from %s: %r", ip, user_agent)
            return Decision(
                conclusion=DENY,
                reason=reason,
                results=[RuleResult(conclusion=DENY, reason=reason)],
            )

        if any(sig in user_agent for sig in self.CRAWLER_SIGNATURES):
            spoofed = ip not in self.verified_crawler_ips
            results.append(
                RuleResult(conclusion=ALLOW, reason=DecisionReason(type="BOT", spoofed=spoofed))
            )

        # ── Sliding window ────────────────────────────────────────────────
        now = time.time()
        window_start = now - self.window
        self._requests[ip] = [ts for ts in self._requests[ip] if ts > window_start]

        if len(self._requests[ip]) + requested > self.max_requests:
            reason = DecisionReason(type="RATE_LIMIT")
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                ip,
                len(self._requests[ip]),
                self.window,
            )
            results.append(RuleResult(conclusion=DENY, reason=reason))
            return Decision(conclusion=DENY, reason=reason, results=results)

        self._requests[ip].extend([now] * requested)
        results.append(RuleResult(conclusion=ALLOW, reason=DecisionReason(type="RATE_LIMIT")))

        self._admitted += 1
        if self._admitted % self.CLEANUP_INTERVAL == 0:
            self._cleanup_inactive_ips(window_start)

        return Decision(conclusion=ALLOW, results=results)

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        """Remove IPs with no requests inside the current window."""
        inactive_ips = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or max(timestamps) < window_start
        ]
        for ip in inactive_ips:
            del self._requests[ip]

        if inactive_ips:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive_ips))


def build_decision_service(settings: Settings) -> DecisionService:
    """Remote service when a key is configured, local limiter otherwise."""
    if settings.uses_remote_decision_service:
        logger.info("Using remote decision service at %s", settings.decision_service_url)
        return RemoteDecisionService(
            base_url=settings.decision_service_url,
            api_key=settings.decision_service_key,
            timeout=settings.decision_service_timeout,
        )
    logger.info(
        "Using local decision service (%d requests / %ds)",
        settings.rate_limit_requests,
        settings.rate_limit_window,
    )
    return LocalDecisionService(
        max_requests=settings.rate_limit_requests,
        window=settings.rate_limit_window,
        verified_crawler_ips=settings.verified_crawler_ip_set,
    )
