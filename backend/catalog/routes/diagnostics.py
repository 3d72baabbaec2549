"""
Catalog Backend: Diagnostic Routes
==================================

What:  Two trivial endpoints for deployment debugging.

    GET /test-path  → where the backend looks for the frontend build and
                      what it finds there (not a stable API)
    GET /api/test   → {"message": "API is working"}
"""

from pathlib import Path

from fastapi import APIRouter, Request

from catalog.schemas.product import DiagnosticResponse, MessageResponse
from catalog.static import DIAGNOSTIC_PATH, INDEX_DOCUMENT, list_build_files

router = APIRouter(tags=["Diagnostics"])

_BASE_DIR = Path(__file__).resolve().parents[1]


@router.get(DIAGNOSTIC_PATH, response_model=DiagnosticResponse)
async def test_path(request: Request) -> DiagnosticResponse:
    dist_path = request.app.state.settings.frontend_dist_path
    index_path = dist_path / INDEX_DOCUMENT
    exists = index_path.is_file()
    return DiagnosticResponse(
        base_dir=str(_BASE_DIR),
        dist_path=str(dist_path),
        index_path=str(index_path),
        exists=exists,
        files=list_build_files(dist_path) if exists else [],
    )


@router.get("/api/test", response_model=MessageResponse)
async def api_test() -> MessageResponse:
    return MessageResponse(message="API is working")
