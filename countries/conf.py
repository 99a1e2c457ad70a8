import os
from dataclasses import dataclass

from django.conf import settings

SUMMARY_IMAGE_NAME = "summary.png"


@dataclass(frozen=True)
class RefreshConfig:
    """
    Everything the refresh pipeline needs from the environment.

    Built once at the request/command boundary and handed down, so the
    pipeline functions can be exercised with any configuration.
    """
    countries_url: str
    rates_url: str
    timeout_ms: int = 15000
    cache_dir: str = "cache"

    @property
    def timeout(self) -> float:
        """Outbound request timeout in seconds, as requests expects it."""
        return self.timeout_ms / 1000.0

    @property
    def summary_image_path(self) -> str:
        return os.path.join(self.cache_dir, SUMMARY_IMAGE_NAME)

    @classmethod
    def from_settings(cls) -> "RefreshConfig":
        return cls(
            countries_url=settings.COUNTRIES_API_URL,
            rates_url=settings.EXCHANGE_RATES_API_URL,
            timeout_ms=int(settings.REFRESH_TIMEOUT_MS),
            cache_dir=str(settings.CACHE_DIR),
        )
