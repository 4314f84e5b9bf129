import json
from typing import Any, Dict

from fastapi import APIRouter, Request, Response

from url2img.core.errors import ValidationError, HTTP_200_OK
from url2img.core.logging import get_logger
from url2img.schemas.render import ErrorResponse

# Create a router for render endpoints
router = APIRouter(tags=["render"])

# Initialize logger
logger = get_logger("render_api")


async def _read_body(request: Request) -> Dict[str, Any]:
    """Decode the JSON body; an empty body counts as an empty object."""
    body = await request.body()
    if not body.strip():
        return {}

    try:
        payload = json.loads(body)
    except ValueError as e:
        raise ValidationError("Request body must be valid JSON", context={"reason": str(e)}) from e

    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


@router.post(
    "/render",
    status_code=HTTP_200_OK,
    response_class=Response,
    summary="Render a URL to an image",
    description="""
    Load a URL in the shared headless browser and return a screenshot of it.

    ## Request body
    A JSON object with a required `url` and optional screenshot fields as sibling keys:
    - `width`, `height`: viewport size in pixels (default 1920x1080)
    - `deviceScaleFactor`: pixel ratio (default 1)
    - `timeoutMs`: navigation timeout in milliseconds (default 30000)
    - `format`: `png` or `jpeg` (default png)
    - `fullPage`: capture the full scrollable page (default false)
    - `quality`: jpeg quality 1-100 (default 80, ignored for png)

    ## Notes
    - Navigation waits until the network is idle
    - Failed renders are not retried
    """,
    responses={
        200: {
            "description": "The rendered image",
            "content": {"image/png": {}, "image/jpeg": {}},
        },
        400: {"model": ErrorResponse, "description": "Invalid input parameters"},
        500: {
            "model": ErrorResponse,
            "description": "Rendering failed",
            "content": {"application/json": {"example": {"error": "Failed to render URL"}}},
        },
        503: {
            "model": ErrorResponse,
            "description": "The service is shutting down",
            "content": {"application/json": {"example": {"error": "Service is shutting down"}}},
        },
    },
)
async def render_url(request: Request) -> Response:
    """Render a URL and return the raw image bytes.

    Errors raised by the broker are turned into JSON responses by the
    application's exception handlers.
    """
    raw = await _read_body(request)

    broker = request.app.state.broker
    result = await broker.render(raw)

    return Response(content=result.data, media_type=result.mime_type)
