"""Centralized application settings via pydantic-settings.

Loads configuration from environment variables with the AVS_ prefix.
Defaults target the hosted rendering backend and a local ``data``
directory. Override via environment variables for other deployments.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Examples:
        Point the client at a staging backend::

            AVS_API_BASE_URL=https://staging.example.com AVS_API_KEY=... \\
                uv run fastapi dev src/avatar_studio/main.py

        Store projects and in-flight jobs elsewhere::

            AVS_DATA_PATH=/var/lib/avatar-studio uv run fastapi run
    """

    # Remote rendering backend
    api_base_url: str = "https://api.synthia.pro"
    api_key: str | None = None

    # Per-request HTTP timeouts (seconds)
    request_timeout_seconds: float = 60.0
    connect_timeout_seconds: float = 10.0

    # Local durable storage
    data_path: Path = Path("data")

    # Overall wait-for-completion budget, independent of HTTP timeouts
    completion_timeout_seconds: float = 600.0

    # Status polling interval widens as the job ages:
    # 4s under 30s elapsed, 6s under 120s, 10s afterwards
    poll_intervals: list[float] = Field(default=[4.0, 6.0, 10.0], min_length=1)
    poll_interval_thresholds: list[float] = [30.0, 120.0]

    # Optimistic progress curve
    progress_tick_seconds: float = 0.4
    progress_rate: float = 0.03
    progress_floor: float = 0.004
    # Below 1.0 so the estimate can never claim completion
    progress_ceiling: float = Field(default=0.95, gt=0, lt=1)
    estimated_total_seconds: int = 180

    # Rendered video dimensions (landscape)
    video_width: int = 1920
    video_height: int = 1080

    model_config = {"env_prefix": "AVS_"}

    def poll_interval_for(self, elapsed: float) -> float:
        """Return the status polling interval for a job of the given age.

        Args:
            elapsed: Seconds since polling started

        Returns:
            Delay in seconds before the next status check
        """
        for threshold, interval in zip(
            self.poll_interval_thresholds, self.poll_intervals, strict=False
        ):
            if elapsed < threshold:
                return interval
        return self.poll_intervals[-1]


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton.

    Uses lru_cache so the Settings object is created once and reused
    across all FastAPI Depends injections.
    """
    return Settings()
