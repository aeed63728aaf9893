"""Configuration management for the idol media service."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    ENV: str = "local"
    SERVICE_NAME: str = "idolmedia"
    SERVICE_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Storage Configuration
    STORAGE_BACKEND: str = "local"  # "gcs", "s3" or "local"
    GCP_PROJECT_ID: str = ""
    GCS_BUCKET_NAME: str = ""
    S3_BUCKET_NAME: str = ""
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str = ""  # Empty = AWS default endpoint
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    LOCAL_STORAGE_PATH: str = "data/objects"
    LOCAL_PUBLIC_BASE_URL: str = "http://localhost:8080/objects"
    LOCAL_SIGNING_SECRET: str = "change-me"

    # Upload Constraints
    MAX_UPLOAD_MB: int = 100  # Per file part
    MAX_FIELD_SIZE_KB: int = 64
    MAX_FIELDS: int = 50

    # Archive Expansion Configuration
    MAX_ARCHIVE_SIZE_MB: int = 500
    MAX_FILES_PER_ARCHIVE: int = 500
    ARCHIVE_IMAGE_EXTENSIONS: str = ".jpg,.jpeg,.png,.gif,.webp"

    # Read Access
    PRESIGNED_URL_TTL_SECONDS: int = 3600

    # Asset Rules
    MAX_SPLASH_COUNT: int = 4

    @property
    def max_upload_bytes(self) -> int:
        """Convert MAX_UPLOAD_MB to bytes."""
        return self.MAX_UPLOAD_MB * 1024 * 1024

    @property
    def max_archive_size_bytes(self) -> int:
        """Convert MAX_ARCHIVE_SIZE_MB to bytes."""
        return self.MAX_ARCHIVE_SIZE_MB * 1024 * 1024

    @property
    def max_field_size_bytes(self) -> int:
        """Convert MAX_FIELD_SIZE_KB to bytes."""
        return self.MAX_FIELD_SIZE_KB * 1024

    @property
    def archive_image_extensions(self) -> tuple[str, ...]:
        """Parse ARCHIVE_IMAGE_EXTENSIONS into lower-case dotted suffixes."""
        extensions = []
        for ext in self.ARCHIVE_IMAGE_EXTENSIONS.split(","):
            ext = ext.strip().lower()
            if not ext:
                continue
            extensions.append(ext if ext.startswith(".") else f".{ext}")
        return tuple(extensions)


# Singleton settings instance
settings = Settings()
