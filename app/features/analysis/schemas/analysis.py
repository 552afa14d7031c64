"""
Analysis Schemas

Request models for the analyze endpoints and the result models produced by one
analysis run.
"""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class Category(str, Enum):
    accessibility = "accessibility"
    performance = "performance"
    seo = "seo"
    security = "security"
    usability = "usability"


class Impact(str, Enum):
    critical = "critical"
    major = "major"
    minor = "minor"


class CheckStatus(str, Enum):
    passed = "pass"
    fail = "fail"
    warning = "warning"
    info = "info"
    error = "error"  # execution failure, set by the orchestrator only


# ============================================================================
# Requests
# ============================================================================

class Viewport(BaseModel):
    name: str = Field(..., min_length=1)
    width: int = Field(..., ge=100, le=4000)
    height: int = Field(..., ge=100, le=4000)


DEFAULT_VIEWPORTS: List[Viewport] = [
    Viewport(name="mobile", width=375, height=667),
    Viewport(name="tablet", width=768, height=1024),
    Viewport(name="desktop", width=1920, height=1080),
    Viewport(name="4k", width=3840, height=2160),
]


class AnalyzeOptions(BaseModel):
    timeout: int = Field(30000, ge=5000, le=120000, description="Navigation timeout in ms")
    wait_for_selector: Optional[str] = None
    generate_report: bool = True


class AnalyzeRequest(BaseModel):
    url: str
    viewports: List[Viewport] = Field(default_factory=list)
    options: AnalyzeOptions = Field(default_factory=AnalyzeOptions)

    class Config:
        json_schema_extra = {
            "example": {
                "url": "https://example.com",
                "viewports": [{"name": "mobile", "width": 375, "height": 667}],
                "options": {"timeout": 30000, "generate_report": True},
            }
        }


class BatchAnalyzeRequest(BaseModel):
    urls: List[str] = Field(..., min_length=1)
    viewports: List[Viewport] = Field(default_factory=list)
    options: AnalyzeOptions = Field(default_factory=AnalyzeOptions)


# ============================================================================
# Results
# ============================================================================

class CheckOutcome(BaseModel):
    """Verdict produced by a single criterion check."""
    status: CheckStatus
    details: str
    recommendations: List[str] = Field(default_factory=list)


class EvaluationResult(BaseModel):
    id: str
    name: str
    description: str
    category: Category
    impact: Impact
    status: CheckStatus
    details: str
    recommendations: List[str] = Field(default_factory=list)
    check_time: int = 0  # ms


class ScreenshotResult(BaseModel):
    viewport: str
    width: int
    height: int
    location: Optional[str] = None
    size_bytes: int = 0
    filename: Optional[str] = None
    error: Optional[str] = None


class AnalysisSummary(BaseModel):
    total: int = 0
    passed: int = 0
    failed: int = 0
    score: int = 0
    categories: Dict[str, int] = Field(default_factory=dict)


class PerformanceMetrics(BaseModel):
    load_time: int = 0
    dom_content_loaded: int = 0
    first_contentful_paint: int = 0
    largest_contentful_paint: int = 0
    dom_elements: int = 0
    network_requests: int = 0
    document_size: int = 0
    error: Optional[str] = None


class AnalysisRun(BaseModel):
    analysis_id: str
    url: str
    timestamp: str
    screenshots: List[ScreenshotResult] = Field(default_factory=list)
    results: List[EvaluationResult] = Field(default_factory=list)
    summary: AnalysisSummary = Field(default_factory=AnalysisSummary)
    performance: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    warnings: List[str] = Field(default_factory=list)
    processing_time: int = 0
    report_url: Optional[str] = None

    def categories(self) -> Dict[str, List[EvaluationResult]]:
        """Results grouped per category, in category order."""
        grouped: Dict[str, List[EvaluationResult]] = {c.value: [] for c in Category}
        for result in self.results:
            grouped.setdefault(result.category.value, []).append(result)
        return grouped


class BatchItem(BaseModel):
    url: str
    score: int
    analysis_id: str
    processing_time: int


class BatchError(BaseModel):
    url: str
    error: str
    code: str


class BatchSummary(BaseModel):
    total: int
    successful: int
    failed: int
    success_rate: int


class BatchResult(BaseModel):
    batch_id: str
    timestamp: str
    summary: BatchSummary
    results: List[BatchItem] = Field(default_factory=list)
    errors: List[BatchError] = Field(default_factory=list)
