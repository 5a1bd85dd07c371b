"""Environment-based configuration for the allocation client."""

import logging
import os

logger = logging.getLogger(__name__)


class Settings:
    """Client configuration loaded from environment variables."""

    def __init__(self):
        self.api_base_url = os.getenv(
            "ALLOCATOR_API_BASE_URL", "http://localhost:8080/api/v1"
        ).rstrip("/")
        self.api_timeout = float(os.getenv("ALLOCATOR_API_TIMEOUT", "30"))
        self.api_token = os.getenv("ALLOCATOR_API_TOKEN", "")
        if not self.api_token:
            logger.debug("ALLOCATOR_API_TOKEN not set, requests will be unauthenticated")

        # Wizard behaviour
        self.search_debounce_seconds = (
            int(os.getenv("ALLOCATOR_SEARCH_DEBOUNCE_MS", "300")) / 1000.0
        )
        self.default_max_cases_per_agent = int(
            os.getenv("ALLOCATOR_DEFAULT_MAX_CASES", "50")
        )

        self.log_level = os.getenv("ALLOCATOR_LOG_LEVEL", "WARNING").upper()


_settings = None


def _get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Re-read the environment, replacing the cached settings."""
    global _settings
    _settings = Settings()
    return _settings


class _SettingsProxy:
    """Lazy proxy so settings aren't loaded until first access."""

    def __getattr__(self, name):
        return getattr(_get_settings(), name)


settings = _SettingsProxy()
