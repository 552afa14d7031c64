import time

from fastapi import APIRouter, status

from app.features.analysis.services.page_session import PageSession
from app.platform.config import settings
from app.platform.response import api_response

router = APIRouter(prefix="/health", tags=["health"])

STARTED_AT = time.monotonic()


@router.get("")
async def health_check():
    return api_response(
        data={
            "status": "ok",
            "service": settings.APP_NAME,
            "environment": settings.ENVIRONMENT,
            "uptime": round(time.monotonic() - STARTED_AT),
        },
        message="Service is healthy",
        status_code=status.HTTP_200_OK,
    )


@router.get("/browser")
async def browser_health_check():
    """Launches a throwaway browser and loads a local page."""
    result = await PageSession.health_check()
    healthy = result["status"] == "healthy"
    return api_response(
        data=result,
        message="Browser is healthy" if healthy else "Browser is unavailable",
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
    )
