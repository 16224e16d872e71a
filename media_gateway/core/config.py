"""Application configuration using pydantic-settings."""

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 1321
    PROJECT_NAME: str = "Media Gateway"

    # local, development, beta, production
    ENVIRONMENT: str = "development"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Logging
    LOG_LEVEL: str = "INFO"

    # Primary backend: Google Cloud Storage through its S3-interoperable XML API
    GG_BUCKET: str = ""
    GG_ACCESS_KEY_ID: str | None = None
    GG_SECRET_ACCESS_KEY: str | None = None
    GG_ENDPOINT: str = "https://storage.googleapis.com"

    # Secondary backend: DigitalOcean Spaces
    SPACES_DOMAIN: str = ""  # e.g. https://sgp1.digitaloceanspaces.com
    SPACES_REGION: str = ""
    SPACES_KEY: str | None = None
    SPACES_SECRET: str | None = None
    SPACES_BUCKET: str = ""
    SPACES_BUCKET_DOMAIN: str = ""  # e.g. https://my-bucket.sgp1.digitaloceanspaces.com

    # Local scratch directory for images that are re-encoded before storage
    UPLOAD_DIR: str = "./upload"

    # Upload delegation to peer gateways
    CDN_MEDIA_SERVICES: list[str] = []
    CDN_UPLOAD_CREDENTIAL: str = ""
    DELEGATION_TIMEOUT_SECONDS: float = 30.0

    # Signed upload URLs
    PRESIGN_EXPIRES_SECONDS: int = 10 * 60

    # Rate limiting (slowapi storage backend)
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def delegation_enabled(self) -> bool:
        """Non-production deployments forward URL uploads to a canonical peer."""
        if self.is_production:
            return False
        if not self.CDN_MEDIA_SERVICES:
            return False
        if not self.CDN_UPLOAD_CREDENTIAL:
            logger.debug("CDN_UPLOAD_CREDENTIAL not set, upload delegation disabled")
            return False
        return True


settings = Settings()
