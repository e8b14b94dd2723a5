"""
Configuration module - loads secrets from Google Secret Manager.
Falls back to environment variables for local development.
"""
import json
import os
import logging
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field, model_validator, field_validator
from typing import List, Any

logger = logging.getLogger(__name__)


def get_secret_from_gcp(secret_id: str, project_id: Optional[str] = None) -> Optional[str]:
    """
    Fetch secret from Google Secret Manager.
    Returns None if not available (fallback to env vars).
    """
    try:
        from google.cloud import secretmanager

        project = project_id or os.environ.get("GCP_PROJECT_ID") or os.environ.get("GOOGLE_CLOUD_PROJECT")
        if not project:
            return None

        client = secretmanager.SecretManagerServiceClient()
        name = f"projects/{project}/secrets/{secret_id}/versions/latest"
        response = client.access_secret_version(request={"name": name})
        return response.payload.data.decode("UTF-8")
    except Exception as e:
        logger.debug(f"Could not fetch secret {secret_id} from Secret Manager: {e}")
        return None


class Settings(BaseSettings):
    """Application settings with Secret Manager integration."""

    # GCP
    gcp_project_id: str = Field(default="", alias="GCP_PROJECT_ID")

    # Supabase (service role: the merge routes act on behalf of the app)
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_service_role_key: str = Field(default="", alias="SUPABASE_SERVICE_ROLE_KEY")
    storage_bucket: str = Field(default="public-documents", alias="STORAGE_BUCKET")

    # Merge tuning (PDF points unless noted)
    min_signature_width: float = Field(default=20.0, alias="MIN_SIGNATURE_WIDTH")
    min_signature_height: float = Field(default=10.0, alias="MIN_SIGNATURE_HEIGHT")
    min_clamped_height: float = Field(default=10.0, alias="MIN_CLAMPED_HEIGHT")
    text_baseline_offset: float = Field(default=20.0, alias="TEXT_BASELINE_OFFSET")
    default_font_size: float = Field(default=12.0, alias="DEFAULT_FONT_SIZE")

    # Pen pad captures (pixel values)
    wacom_transparency_threshold: int = Field(
        default=240,
        alias="WACOM_TRANSPARENCY_THRESHOLD",
        description="RGB level above which pad background pixels become transparent",
    )
    wacom_max_width: int = Field(default=600, alias="WACOM_MAX_WIDTH")
    wacom_max_height: int = Field(default=300, alias="WACOM_MAX_HEIGHT")

    # Uploads
    max_pdf_bytes: int = Field(default=50 * 1024 * 1024, alias="MAX_PDF_BYTES")

    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # CORS
    allowed_origins: List[str] = Field(default=[], alias="ALLOWED_ORIGINS")
    allowed_origin_regex: str = Field(default="", alias="ALLOWED_ORIGIN_REGEX")

    @field_validator("allowed_origins", mode='before')
    @classmethod
    def _parse_allowed_origins(cls, v: Any) -> List[str]:
        """Parse ALLOWED_ORIGINS from JSON list, CSV, semicolon-separated string, or list."""
        if v is None:
            return []
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    return json.loads(s)
                except json.JSONDecodeError:
                    pass  # Fall through to delimiter parsing
            # Semicolon is useful in Cloud Build where comma separates env vars
            parts = [p.strip() for p in s.replace(",", ";").split(";")]
            return [p for p in parts if p]
        return []

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._load_secrets_from_gcp()

    def _load_secrets_from_gcp(self):
        """Override settings with values from Secret Manager if available."""
        secret_mappings = {
            "supabase_url": "SUPABASE_URL",
            "supabase_service_role_key": "SUPABASE_SERVICE_ROLE_KEY",
        }

        for attr, secret_id in secret_mappings.items():
            secret_value = get_secret_from_gcp(secret_id, self.gcp_project_id)
            if secret_value:
                setattr(self, attr, secret_value)
                logger.info(f"Loaded {secret_id} from Secret Manager")

    @model_validator(mode='after')
    def validate_merge_limits(self) -> 'Settings':
        """Reject merge tuning that would make every placement undrawable."""
        for name in ("min_signature_width", "min_signature_height", "min_clamped_height"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name.upper()} must be positive")

        if not 0 <= self.wacom_transparency_threshold <= 255:
            raise ValueError("WACOM_TRANSPARENCY_THRESHOLD must be between 0 and 255")

        if self.environment == "production" and not self.supabase_service_role_key:
            logger.error(
                "CRITICAL: SUPABASE_SERVICE_ROLE_KEY is not set in production! "
                "Document routes will fail to reach storage."
            )

        return self


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# =============================================================================
# CORS Configuration
# =============================================================================

# Development origins (only in non-production)
DEV_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://localhost:8080",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
]


def get_cors_origins() -> List[str]:
    """
    Get list of allowed CORS origins.

    Combines origins from ALLOWED_ORIGINS with the development origins
    outside production.
    """
    settings = get_settings()
    origins = set(settings.allowed_origins)

    if settings.environment != "production":
        origins.update(DEV_CORS_ORIGINS)

    return sorted(origins)


def is_allowed_origin(origin: str) -> bool:
    """Check if an origin is allowed for CORS."""
    import re

    if not origin:
        return False

    settings = get_settings()

    if origin in get_cors_origins():
        return True

    if settings.allowed_origin_regex and re.fullmatch(settings.allowed_origin_regex, origin):
        return True

    # Allow any localhost in development
    if settings.environment != "production":
        if origin.startswith("http://localhost:") or origin.startswith("http://127.0.0.1:"):
            return True

    return False
