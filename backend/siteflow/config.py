from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "SiteFlow"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # API
    API_TOKEN: str = ""  # empty = open API
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # Reports
    REPORTS_DIR: str = "reports"
    PUBLISH_DIR: str = "docs/reports"
    REPORT_INDEX_LIMIT: int = 50

    # Discovery engine (OWASP ZAP in Docker)
    DOCKER_BINARY: str = "docker"
    ZAP_IMAGE: str = "owasp/zap2docker-stable"
    ZAP_PORT: int = 0  # host port for the container; 0 picks a free one per scan
    ZAP_HOST: str = "localhost"
    ZAP_REQUEST_TIMEOUT: float = 30.0  # seconds
    ZAP_READY_ATTEMPTS: int = 90
    ZAP_READY_INTERVAL: float = 1.0
    SPIDER_POLL_INTERVAL: float = 2.0
    SPIDER_MAX_POLLS: int = 1800  # 1 hour at 2s
    AJAX_POLL_INTERVAL: float = 3.0
    AJAX_MAX_POLLS: int = 1200  # 1 hour at 3s

    # Browser
    BROWSER_HEADLESS: bool = True
    NAVIGATION_TIMEOUT: int = 30000  # ms
    LOGIN_SUCCESS_TIMEOUT: int = 30000  # ms
    NETWORK_IDLE_TIMEOUT: int = 15000  # ms

    # Page collection
    DEFAULT_MAX_PAGES: int = 50
    LINK_SAMPLE_SIZE: int = 30
    LINK_CHECK_TIMEOUT: float = 8.0  # seconds

    # Scripted login (authenticated crawls)
    LOGIN_URL: str = ""
    LOGIN_USERNAME: str = ""
    LOGIN_PASSWORD: str = ""
    LOGIN_USER_FIELD: str = ""
    LOGIN_PASS_FIELD: str = ""
    LOGIN_SUBMIT_SELECTOR: str = ""
    LOGGED_IN_URL_PATTERN: str = ""

    # Metrics
    METRICS_ENABLED: bool = True

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
