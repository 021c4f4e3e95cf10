"""
Fireside Backend — Application Configuration
==============================================

What:  Where the Supabase project lives, how hard to lean on it, and the
       defaults for new highlights.
How:   A pydantic-settings model read from the environment (or .env);
       field names map to upper-case variables (SUPABASE_URL, ...).
       `settings` is built at import; the lifespan runs
       validate_required_for_production() before serving.
"""

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from fireside.schemas.highlight import HighlightColor, Visibility


class Settings(BaseSettings):
    """
    Environment-backed settings.

    Defaults target a local `supabase start` stack. Deployments set
    SUPABASE_URL and SUPABASE_ANON_KEY.
    """

    # ── Supabase ──────────────────────────────────────────────────────────
    # What: Project URL of the hosted backend (PostgREST lives under /rest/v1,
    # auth under /auth/v1)
    supabase_url: str = Field(
        default="http://localhost:54321",
        description="Base URL of the Supabase project",
    )

    # What: Public anon key, sent as the `apikey` header on every request.
    # The user's own access token is forwarded separately as the bearer token.
    supabase_anon_key: str = Field(
        default="",
        description="Supabase anon (public) API key",
    )

    # What: Total per-request timeout for calls to Supabase, in seconds
    http_timeout: float = Field(default=15.0, gt=0, le=120)

    # What: Keep-alive pool shared by every user session
    http_max_connections: int = Field(default=50, ge=1, le=500)

    # ── Highlight defaults ────────────────────────────────────────────────
    # Applied when a create request leaves color or visibility unset
    default_highlight_color: HighlightColor = Field(default=HighlightColor.YELLOW)
    default_highlight_visibility: Visibility = Field(default=Visibility.PRIVATE)

    # ── CORS ──────────────────────────────────────────────────────────────
    # Format: Comma-separated URLs (split by cors_origins_list)
    cors_origins: str = Field(default="http://localhost:5173")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Retry Configuration ───────────────────────────────────────────────
    # What: Tenacity retry settings for idempotent reads against Supabase.
    # Writes (create/delete) are never retried.
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_min_wait: float = Field(default=0.5, ge=0, le=30)
    retry_max_wait: float = Field(default=4.0, ge=0, le=120)

    # ── Circuit Breaker ───────────────────────────────────────────────────
    # What: After N consecutive transport failures, fail fast for M seconds
    cb_failure_threshold: int = Field(default=5, ge=2, le=20)
    cb_recovery_timeout: int = Field(default=30, ge=1, le=300)

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,  # SUPABASE_URL and supabase_url both work
    }

    def validate_required_for_production(self) -> None:
        """
        Raise ValueError listing every missing or malformed Supabase setting.
        """
        errors = []
        if not self.supabase_anon_key or self.supabase_anon_key == "your_anon_key_here":
            errors.append(
                "SUPABASE_ANON_KEY is not set. "
                "Find it under Project Settings → API in the Supabase dashboard"
            )
        if not self.supabase_url.startswith(("http://", "https://")):
            errors.append(f"SUPABASE_URL '{self.supabase_url}' is not an http(s) URL")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance, imported throughout the application
settings = Settings()
