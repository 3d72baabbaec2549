# Middleware package init
"""
Catalog Backend: Admission Pipeline
===================================

What:  Cross-cutting stages every request passes through before routing.
How:   One runner middleware (AdmissionPipelineMiddleware) executes an explicit
       ordered list of Stage objects. Each stage either passes, short-circuits
       with a response, or raises; raised errors go to the generic error
       responder.

Stage Order:
    Request → [Body] → [CORS] → [Security Headers] → [Access Log] → [Decision] → Dispatch

    on_response hooks run in reverse for every stage that ran, so headers and
    the access log line also apply to short-circuit and error responses.
"""

from catalog.middleware.body import BodyParsingStage
from catalog.middleware.headers import CORSStage, SecurityHeadersStage
from catalog.middleware.logging import AccessLogStage
from catalog.middleware.pipeline import (
    AdmissionPipelineMiddleware,
    Stage,
    StageContext,
    error_response,
)
from catalog.middleware.rate_limit import DecisionStage

__all__ = [
    "AccessLogStage",
    "AdmissionPipelineMiddleware",
    "BodyParsingStage",
    "CORSStage",
    "DecisionStage",
    "SecurityHeadersStage",
    "Stage",
    "StageContext",
    "build_stages",
    "error_response",
]


def build_stages(settings, decision_service):
    """The admission stages, in execution order."""
    return [
        BodyParsingStage(),
        CORSStage(allow_origins=settings.cors_origins_list),
        SecurityHeadersStage(),
        AccessLogStage(),
        DecisionStage(decision_service, settings),
    ]
