"""
Business Verifier — Configuration via environment variables.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """All settings read from env / .env file."""

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./busverifier.db",
        description="Async SQLAlchemy DB URL",
    )

    # Google Maps / Places
    google_maps_api_key: str = Field(default="", description="Places + Geocoding API key")
    http_timeout_secs: int = Field(default=15)
    max_nearby_radius_m: int = Field(default=50000, description="Places API radius cap")

    # AI location extraction (Gemini)
    gemini_api_key: str = Field(default="", description="Gemini API key (AI prospecting)")
    ai_model: str = Field(default="gemini-2.5-flash")
    ai_api_url: str = Field(
        default="",
        description="Override AI API URL (auto-set from model if blank)",
    )
    ai_max_attempts: int = Field(default=3)
    ai_backoff_base: float = Field(default=2.0, description="Seconds; wait base**attempt")
    ai_sample_rows: int = Field(default=20, description="Source rows sent to the AI")

    @property
    def ai_effective_url(self) -> str:
        """Resolve generateContent URL for the configured model."""
        if self.ai_api_url:
            return self.ai_api_url
        return (
            "https://generativelanguage.googleapis.com/v1beta/models/"
            f"{self.ai_model}:generateContent"
        )

    # Lookup backend: "auto" (google when a Maps key is set), "google" or "offline"
    lookup_mode: str = Field(default="auto")

    # Pipeline
    verification_batch_size: int = Field(default=10)
    prospect_batch_size: int = Field(default=25)
    verified_confidence_threshold: float = Field(
        default=0.8, description="Confidence at/above which a match is 'verified' rather than 'updated'"
    )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
