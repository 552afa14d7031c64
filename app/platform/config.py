from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "Site Quality Checker"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    DEBUG: bool = True

    # ── Browser ─────────────────────────────────
    CHROMEDRIVER_PATH: Optional[str] = None
    BROWSER_HEADLESS: bool = True
    BROWSER_USER_AGENT: str = "Mozilla/5.0 (compatible; SiteQualityChecker/1.0)"
    IGNORE_HTTPS_ERRORS: bool = True

    # ── Navigation & waits (milliseconds) ───────
    NAVIGATION_TIMEOUT_MS: int = 30000
    SELECTOR_WAIT_TIMEOUT_MS: int = 10000
    NETWORK_IDLE_TIMEOUT_MS: int = 15000
    NETWORK_IDLE_WINDOW_MS: int = 500
    SCREENSHOT_SETTLE_MS: int = 1000

    # ── Evaluation ──────────────────────────────
    EVALUATION_VIEWPORT_WIDTH: int = 1920
    EVALUATION_VIEWPORT_HEIGHT: int = 1080
    SLOW_CHECK_THRESHOLD_MS: int = 5000
    CHECK_TIMEOUT_MS: int = 30000  # 0 disables the per-check ceiling

    # ── Batch ───────────────────────────────────
    BATCH_CONCURRENCY: int = 5
    BATCH_MAX_URLS: int = 100

    # ── Storage ─────────────────────────────────
    STORAGE_DIR: str = "static/analysis"
    STORAGE_BASE_URL: str = "/static/analysis"

    # ── Logging ─────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILE: str = "site_checker.log"

    class Config:
        env_file = str(Path(__file__).parent.parent.parent / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
