"""
Process-wide configuration for the discipline dashboard gateway.

Everything is read from environment variables once, at startup, and
validated into a pydantic-settings ``Settings`` object. The render
profile (local browser vs. the trimmed serverless binary) is derived
here too and handed to the renderer explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOCAL = "local"
CONSTRAINED = "serverless"

# Values of APP_ENV that select the constrained (serverless) profile
_CONSTRAINED_ENVS = {"serverless", "production"}

DEFAULT_HEADER_IMAGE_URL = (
    "https://res.cloudinary.com/dqofannrv/image/upload/v1756047450/header_trensains_ysdk48.jpg"
)

BASE_BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
]

CONSTRAINED_BROWSER_ARGS = BASE_BROWSER_ARGS + [
    "--single-process",
    "--no-zygote",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
]


@dataclass(frozen=True)
class RenderProfile:
    """How the headless browser is launched and how long each step may take."""

    name: str
    args: list[str]
    executable_path: str | None = None
    viewport: dict[str, int] | None = None
    ignore_https_errors: bool = False
    launch_timeout_ms: int = 30_000
    content_timeout_ms: int = 30_000
    pdf_timeout_ms: int = 30_000
    image_timeout_ms: int = 5_000


def render_profile_for(app_env: str, executable_path: str | None = None) -> RenderProfile:
    """
    Build the render profile for a runtime environment.

    Raises:
        ValueError: If the environment name is unknown, or the constrained
            profile is requested without a browser binary.
    """
    env = (app_env or LOCAL).strip().lower()

    if env == LOCAL:
        return RenderProfile(
            name=LOCAL,
            args=list(BASE_BROWSER_ARGS),
            executable_path=executable_path or None,
        )

    if env in _CONSTRAINED_ENVS:
        if not executable_path:
            raise ValueError(
                f"APP_ENV={app_env!r} needs CHROMIUM_EXECUTABLE_PATH pointing at the packaged browser."
            )
        return RenderProfile(
            name=CONSTRAINED,
            args=list(CONSTRAINED_BROWSER_ARGS),
            executable_path=executable_path,
            viewport={"width": 1280, "height": 800},
            ignore_https_errors=True,
        )

    raise ValueError(f"Unknown APP_ENV {app_env!r} (expected 'local' or 'serverless').")


class Settings(BaseSettings):
    """Application settings, all configurable via environment variables."""

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    app_env: str = LOCAL
    api_base_url: str = "http://localhost:8000"
    session_secret: str = "dev-only-change-me"
    session_max_age: int = Field(default=60 * 60 * 24, gt=0)
    # None means "secure only behind the serverless profile"
    cookie_secure: bool | None = None
    chromium_executable_path: str | None = None
    # Stored as a comma-separated string, parsed by ``cors_origins``
    cors_origins_str: str = Field(default="*", validation_alias="CORS_ORIGINS")
    report_header_image_url: str = DEFAULT_HEADER_IMAGE_URL
    pdf_max_retries: int = 2

    @field_validator("app_env")
    @classmethod
    def _normalise_env(cls, value: str) -> str:
        env = (value or LOCAL).strip().lower()
        return CONSTRAINED if env in _CONSTRAINED_ENVS else env

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("pdf_max_retries")
    @classmethod
    def _at_least_one_attempt(cls, value: int) -> int:
        return max(1, value)

    @model_validator(mode="after")
    def _check_profile(self) -> "Settings":
        # Fails early on an unknown APP_ENV or a missing serverless browser
        render_profile_for(self.app_env, self.chromium_executable_path)
        if self.cookie_secure is None:
            self.cookie_secure = self.app_env == CONSTRAINED
        return self

    @property
    def render_profile(self) -> RenderProfile:
        return render_profile_for(self.app_env, self.chromium_executable_path)

    @property
    def cors_origins(self) -> list[str]:
        origins = [o.strip() for o in self.cors_origins_str.split(",") if o.strip()]
        return origins or ["*"]


def load_settings() -> Settings:
    """Read settings from the process environment."""
    return Settings()
