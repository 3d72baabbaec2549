"""
Catalog Backend: Body Parsing Stage
===================================

What:  Materializes a JSON request body before routing.
How:   When Content-Type is application/json (or a +json type) and the body
       is non-empty, the body is decoded and stored on ctx.json_body and
       request.state.json_body. Malformed JSON answers 400 immediately.
"""

import json
import logging
from typing import Optional

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from catalog.middleware.pipeline import Stage, StageContext

logger = logging.getLogger(__name__)


def is_json_content_type(content_type: str) -> bool:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


class BodyParsingStage(Stage):
    name = "body"

    async def on_request(self, request: Request, ctx: StageContext) -> Optional[Response]:
        if not is_json_content_type(request.headers.get("content-type", "")):
            return None

        body = await request.body()
        if not body.strip():
            return None

        try:
            ctx.json_body = json.loads(body)
        except ValueError as e:
            logger.debug("Malformed JSON body on %s %s: %s", request.method, request.url.path, e)
            return JSONResponse(status_code=400, content={"error": "Malformed JSON body"})

        request.state.json_body = ctx.json_body
        return None
