"""Self-contained HTML report for one analysis run."""
import os

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.features.analysis.schemas.analysis import AnalysisRun, CheckStatus
from app.features.analysis.services.scoring import category_scores
from app.platform.logger import get_logger
from app.platform.services.storage import StorageBackend

logger = get_logger(__name__)

current_dir = os.path.dirname(os.path.abspath(__file__))
template_dir = os.path.join(current_dir, "../template")

# Fallback path if running from a different location
if not os.path.exists(template_dir):
    template_dir = os.path.join(os.getcwd(), "app/features/analysis/template")

env = Environment(loader=FileSystemLoader(template_dir), autoescape=select_autoescape(["html"]))

CATEGORY_TITLES = {
    "accessibility": "Accessibility",
    "performance": "Performance",
    "seo": "SEO",
    "security": "Security",
    "usability": "Usability",
}


def score_band(score: int) -> str:
    if score >= 80:
        return "good"
    if score >= 50:
        return "average"
    return "poor"


class ReportService:
    def __init__(self, storage: StorageBackend):
        self.storage = storage

    def render(self, run: AnalysisRun) -> str:
        template = env.get_template("report.html")
        return template.render(
            run=run,
            summary=run.summary,
            score_band=score_band(run.summary.score),
            category_titles=CATEGORY_TITLES,
            category_scores=category_scores(run.results),
            categories=run.categories(),
            screenshots=[s for s in run.screenshots if s.location],
            failed_screenshots=[s for s in run.screenshots if s.error],
            performance=run.performance,
            status_pass=CheckStatus.passed,
        )

    async def generate(self, run: AnalysisRun) -> str:
        """Render the report, store it and return its location."""
        html = self.render(run)
        location = await self.storage.store(html, f"reports/{run.analysis_id}-report.html", "text/html")
        logger.info(f"Report stored for {run.analysis_id}: {location}")
        return location
