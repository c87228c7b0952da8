"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

EXTRACTOR_BACKENDS = {"auto", "firecrawl", "site"}
SCORING_PROFILES = {"standard", "extended"}
CATERING_AMBIGUITY_POLICIES = {"unknown", "false"}


class ConfigError(RuntimeError):
    """Raised when a configuration value cannot be interpreted."""


@dataclass(frozen=True)
class Settings:
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    completion_temperature: float = 0.3
    completion_timeout: Optional[float] = None
    firecrawl_api_key: str = ""
    extractor_backend: str = "auto"
    extraction_timeout: int = 120
    extraction_wait_ms: int = 5000
    max_pages: int = 3
    enrich_max_workers: int = 4
    prompt_content_limit: int = 3000
    content_cache_ttl: int = 3600
    url_job_ttl: int = 3600
    scoring_profile: str = "standard"
    catering_ambiguity_default: str = "unknown"
    database_url: str = ""
    enrich_callback_url: str = ""
    default_phone_region: Optional[str] = "US"
    enrich_use_js_renderer: bool = False
    worker_port: int = 9000

    @property
    def resolved_extractor_backend(self) -> str:
        if self.extractor_backend != "auto":
            return self.extractor_backend
        return "firecrawl" if self.firecrawl_api_key else "site"


def _int_env(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _float_env(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be numeric, got {raw!r}") from exc


def _choice_env(name: str, default: str, allowed: set) -> str:
    value = (os.getenv(name) or default).strip().lower()
    if value not in allowed:
        raise ConfigError(f"{name} must be one of {sorted(allowed)}, got {value!r}")
    return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    openai_api_key = os.getenv("OPENAI_API_KEY", "")
    firecrawl_api_key = os.getenv("FIRECRAWL_API_KEY", "")
    database_url = os.getenv("DATABASE_URL", "")
    enrich_callback_url = os.getenv("ENRICH_CALLBACK_URL", "")
    default_phone_region_raw = os.getenv("DEFAULT_PHONE_REGION", "US")
    default_phone_region = default_phone_region_raw.strip().upper() or None
    enrich_use_js_renderer = os.getenv("ENRICH_USE_JS_RENDERER", "false").lower() in {"1", "true", "yes"}

    settings = Settings(
        openai_api_key=openai_api_key,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
        completion_temperature=_float_env("OPENAI_TEMPERATURE", 0.3),
        completion_timeout=_float_env("OPENAI_TIMEOUT_SECONDS", None),
        firecrawl_api_key=firecrawl_api_key,
        extractor_backend=_choice_env("CONTENT_EXTRACTOR", "auto", EXTRACTOR_BACKENDS),
        extraction_timeout=_int_env("EXTRACTION_TIMEOUT_SECONDS", 120, minimum=1),
        extraction_wait_ms=_int_env("EXTRACTION_WAIT_MS", 5000),
        max_pages=_int_env("WORKER_MAX_PAGES", 3, minimum=1),
        enrich_max_workers=_int_env("ENRICH_MAX_WORKERS", 4, minimum=1),
        prompt_content_limit=_int_env("PROMPT_CONTENT_LIMIT", 3000, minimum=1),
        content_cache_ttl=_int_env("CONTENT_CACHE_TTL_SECONDS", 3600),
        url_job_ttl=_int_env("URL_JOB_TTL_SECONDS", 3600, minimum=1),
        scoring_profile=_choice_env("SCORING_PROFILE", "standard", SCORING_PROFILES),
        catering_ambiguity_default=_choice_env(
            "CATERING_AMBIGUITY_DEFAULT", "unknown", CATERING_AMBIGUITY_POLICIES
        ),
        database_url=database_url,
        enrich_callback_url=enrich_callback_url,
        default_phone_region=default_phone_region,
        enrich_use_js_renderer=enrich_use_js_renderer,
        worker_port=_int_env("WORKER_PORT", 9000, minimum=1),
    )

    if not openai_api_key:
        logger.warning("OPENAI_API_KEY is not configured; AI enrichment will fall back to heuristics.")
    if settings.extractor_backend == "firecrawl" and not firecrawl_api_key:
        logger.warning("CONTENT_EXTRACTOR=firecrawl but FIRECRAWL_API_KEY is not configured; extraction will fail.")
    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")

    return settings
