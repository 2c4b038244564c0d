import logging

from pydantic_settings import BaseSettings
from typing import List

_logger = logging.getLogger(__name__)

BROWSER_MODES = ("local", "serverless")


class Settings(BaseSettings):
    # App
    APP_NAME: str = "ProductLens"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Browser
    # "local" launches the bundled Playwright Chromium; "serverless" uses the
    # constrained flag set (and BROWSER_EXECUTABLE_PATH when a slim binary is shipped)
    BROWSER_MODE: str = "local"
    BROWSER_HEADLESS: bool = True
    BROWSER_EXECUTABLE_PATH: str = ""

    # Extraction
    STATIC_FETCH_TIMEOUT: float = 10.0  # seconds
    EXTRACT_API_TIMEOUT: int = 60  # Max seconds for a single /v1/extract call

    # Sentry
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2
    SENTRY_ENVIRONMENT: str = "development"

    # Logging
    LOG_FORMAT: str = "json"  # "json" for production, "text" for development
    LOG_LEVEL: str = "INFO"

    # Metrics
    METRICS_ENABLED: bool = True

    def model_post_init(self, __context) -> None:
        if self.BROWSER_MODE not in BROWSER_MODES:
            _logger.warning(
                "Unknown BROWSER_MODE %r, falling back to 'local'. Expected one of %s.",
                self.BROWSER_MODE,
                ", ".join(BROWSER_MODES),
            )
            object.__setattr__(self, "BROWSER_MODE", "local")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
