from fastapi import APIRouter, Depends, status

from app.features.analysis.schemas.analysis import AnalyzeRequest, BatchAnalyzeRequest
from app.features.analysis.services.analyzer import AnalysisService
from app.platform.config import settings
from app.platform.exceptions import InvalidURLError
from app.platform.logger import get_logger
from app.platform.response import api_response
from app.platform.utils.url_validator import ensure_valid_url

logger = get_logger(__name__)

router = APIRouter(prefix="/analyze", tags=["analysis"])


def get_analysis_service() -> AnalysisService:
    return AnalysisService()


def _block_private() -> bool:
    return settings.ENVIRONMENT == "production"


@router.post("")
async def analyze_url(
    request: AnalyzeRequest,
    service: AnalysisService = Depends(get_analysis_service),
):
    """
    Load the page, capture screenshots and run every check.
    Results are returned flat and grouped per category.
    """
    url = ensure_valid_url(request.url, block_private=_block_private())
    logger.info(f"Analysis request received for {url} ({len(request.viewports)} viewports)")

    run = await service.run_analysis(url, request.viewports or None, request.options)

    data = run.model_dump(mode="json")
    data["categories"] = {
        category: [result.model_dump(mode="json") for result in results]
        for category, results in run.categories().items()
    }
    return api_response(
        data=data,
        message="Analysis completed successfully",
        status_code=status.HTTP_200_OK,
    )


@router.post("/batch")
async def analyze_batch(
    request: BatchAnalyzeRequest,
    service: AnalysisService = Depends(get_analysis_service),
):
    if len(request.urls) > settings.BATCH_MAX_URLS:
        raise InvalidURLError(
            f"Maximum {settings.BATCH_MAX_URLS} URLs allowed per batch",
            code="TOO_MANY_URLS",
            details={"count": len(request.urls)},
        )

    urls = [ensure_valid_url(url, block_private=_block_private()) for url in request.urls]
    logger.info(f"Batch analysis request: {len(urls)} URLs")

    result = await service.run_batch(urls, request.viewports or None, request.options)
    return api_response(
        data=result,
        message=f"Batch analysis completed: {result.summary.successful}/{result.summary.total} succeeded",
        status_code=status.HTTP_200_OK,
    )
