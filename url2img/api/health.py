from fastapi import APIRouter, Request, status

from url2img.core.config import VERSION
from url2img.schemas.health import HealthResponse

# Create a router for health check endpoints
router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="""
    Report whether the service accepts renders, plus renderer statistics.

    The browser is launched lazily, so `running: false` before the first
    render is normal.
    """,
)
async def health_check(request: Request) -> HealthResponse:
    broker = request.app.state.broker
    stats = broker.get_stats()

    return HealthResponse(
        status="shutting_down" if stats["closing"] else "ok",
        version=VERSION,
        services={"renderer": stats},
    )
