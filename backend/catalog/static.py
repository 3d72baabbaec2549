"""
Catalog Backend: Static / API Dispatcher
========================================

What:  Serves the prebuilt frontend and, in production, falls back to the
       SPA entry document for client-side routes.

Dispatch Order (routes registered in main.create_app):
    1. GET /test-path            → diagnostic JSON (routes/diagnostics.py)
    2. /api/products...          → products router
    3. GET /api/test             → liveness JSON
    4. anything else             → FrontendStaticFiles mounted at "/"
    5. production, no file found → index.html, or 404 "Frontend build not found"
       (any method; never for /api/... or /test-path)
    6. otherwise, no file found  → 404

Files are served byte for byte; nothing here transforms them.
"""

import logging
import os
from pathlib import Path
from typing import List

from starlette.exceptions import HTTPException
from starlette.responses import FileResponse, PlainTextResponse, Response
from starlette.staticfiles import StaticFiles
from starlette.types import Scope

logger = logging.getLogger(__name__)

API_PREFIX = "/api/"
DIAGNOSTIC_PATH = "/test-path"
INDEX_DOCUMENT = "index.html"


def is_api_path(path: str) -> bool:
    return path.startswith(API_PREFIX)


def list_build_files(dist_path: Path) -> List[str]:
    """Sorted top-level entries of the build directory."""
    return sorted(os.listdir(dist_path))


class FrontendStaticFiles(StaticFiles):
    """
    StaticFiles for the frontend build with an optional SPA fallback.

    A missing build directory is tolerated: lookups simply miss, so the
    server can run API-only while the frontend has not been built.
    """

    def __init__(self, directory: Path, spa_fallback: bool = False):
        super().__init__(directory=str(directory), check_dir=False)
        self.dist_path = Path(directory)
        self.index_path = self.dist_path / INDEX_DOCUMENT
        self.spa_fallback = spa_fallback

    async def check_config(self) -> None:
        if self.dist_path.is_dir():
            await super().check_config()

    async def get_response(self, path: str, scope: Scope) -> Response:
        try:
            return await super().get_response(path, scope)
        except HTTPException as exc:
            # 405: no route accepted this method, so it is a miss as well
            if exc.status_code not in (404, 405):
                raise
            if not self.should_fall_back(scope["path"]):
                raise HTTPException(status_code=404) from exc
        return self.entry_document_response()

    def should_fall_back(self, request_path: str) -> bool:
        if not self.spa_fallback:
            return False
        return not is_api_path(request_path) and request_path != DIAGNOSTIC_PATH

    def entry_document_response(self) -> Response:
        if self.index_path.is_file():
            return FileResponse(self.index_path)
        logger.warning("SPA entry document missing at %s", self.index_path)
        return PlainTextResponse("Frontend build not found", status_code=404)
