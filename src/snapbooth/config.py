"""Configuration management."""

import os
from pathlib import Path
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


class Config(BaseModel):
    """Application configuration."""

    # AI restyle endpoint
    hf_api_token: str = Field(
        default_factory=lambda: os.getenv("HUGGINGFACE_API_TOKEN", ""),
        description="Hugging Face inference API token"
    )
    hf_api_url: str = Field(
        default_factory=lambda: os.getenv(
            "HUGGINGFACE_API_URL", "https://api-inference.huggingface.co/models"
        ),
        description="Base URL of the style inference endpoint"
    )
    ai_max_attempts: int = Field(
        default_factory=lambda: _env_int("SNAPBOOTH_AI_MAX_ATTEMPTS", 3),
        description="Attempts before the model is reported unavailable"
    )
    ai_default_wait: float = Field(
        default_factory=lambda: _env_float("SNAPBOOTH_AI_DEFAULT_WAIT", 30.0),
        description="Wait used when a loading response carries no estimate"
    )
    ai_max_wait: float = Field(
        default_factory=lambda: _env_float("SNAPBOOTH_AI_MAX_WAIT", 60.0),
        description="Upper bound on a single warm-up wait"
    )
    ai_request_timeout: float = Field(
        default_factory=lambda: _env_float("SNAPBOOTH_AI_REQUEST_TIMEOUT", 120.0),
        description="Timeout for one inference request"
    )

    # Storage
    storage_backend: str = Field(
        default_factory=lambda: os.getenv("SNAPBOOTH_STORAGE_BACKEND", "disk"),
        description="Object storage backend: 'disk' or 'gcs'"
    )
    storage_root: Path = Field(
        default_factory=lambda: Path(os.getenv("SNAPBOOTH_STORAGE_ROOT", "./media")),
        description="Root directory for the disk storage backend"
    )
    public_base_url: str = Field(
        default_factory=lambda: os.getenv("SNAPBOOTH_PUBLIC_BASE_URL", "http://localhost:8000/media"),
        description="Public URL prefix for disk-stored objects"
    )
    gcs_bucket: str = Field(
        default_factory=lambda: os.getenv("SNAPBOOTH_GCS_BUCKET", ""),
        description="GCS bucket for the gcs storage backend"
    )
    google_cloud_project: str = Field(
        default_factory=lambda: os.getenv("GOOGLE_CLOUD_PROJECT", ""),
        description="Google Cloud project ID"
    )

    # Collaborator stores
    database_path: Path = Field(
        default_factory=lambda: Path(os.getenv("SNAPBOOTH_DATABASE", "./snapbooth.db")),
        description="SQLite file holding artifact rows"
    )
    events_file: Path = Field(
        default_factory=lambda: Path(os.getenv("SNAPBOOTH_EVENTS_FILE", "./events.yaml")),
        description="YAML file with event and branding configuration"
    )

    # Encoding
    ffmpeg_binary: str = Field(
        default_factory=lambda: os.getenv("SNAPBOOTH_FFMPEG", "ffmpeg"),
        description="ffmpeg executable used for animated sequences"
    )
    ffmpeg_timeout: float = Field(
        default_factory=lambda: _env_float("SNAPBOOTH_FFMPEG_TIMEOUT", 120.0),
        description="Seconds before an encode process is killed"
    )
    font_path: str = Field(
        default_factory=lambda: os.getenv("SNAPBOOTH_FONT", "DejaVuSans-Bold.ttf"),
        description="TrueType font used for branding text"
    )

    # Remote fetch / bulk export
    fetch_connect_timeout: float = Field(
        default_factory=lambda: _env_float("SNAPBOOTH_FETCH_CONNECT_TIMEOUT", 5.0),
        description="Seconds allowed to establish a connection"
    )
    fetch_response_timeout: float = Field(
        default_factory=lambda: _env_float("SNAPBOOTH_FETCH_RESPONSE_TIMEOUT", 20.0),
        description="Wall-clock deadline for a full response body"
    )
    fetch_max_redirects: int = Field(
        default_factory=lambda: _env_int("SNAPBOOTH_FETCH_MAX_REDIRECTS", 3),
        description="Redirect hops followed before failing"
    )
    export_workers: int = Field(
        default_factory=lambda: _env_int("SNAPBOOTH_EXPORT_WORKERS", 4),
        description="Concurrent fetches during bulk export"
    )

    log_level: str = Field(
        default_factory=lambda: os.getenv("SNAPBOOTH_LOG_LEVEL", "INFO"),
        description="Root log level for the server"
    )

    class Config:
        """Pydantic config."""
        frozen = False

    def validate_ai_required(self) -> None:
        """Validate that the inference endpoint credentials are set."""
        if not self.hf_api_token:
            raise ValueError("HUGGINGFACE_API_TOKEN not set")

    def validate_storage_required(self) -> None:
        """Validate that the selected storage backend is configured.

        Raises:
            ValueError: If the backend is unknown or its settings are missing.
        """
        if self.storage_backend not in ("disk", "gcs"):
            raise ValueError(
                f"SNAPBOOTH_STORAGE_BACKEND must be 'disk' or 'gcs'. "
                f"Got: {self.storage_backend}"
            )

        if self.storage_backend == "gcs":
            missing: list[str] = []
            if not self.gcs_bucket:
                missing.append("SNAPBOOTH_GCS_BUCKET")
            if not self.google_cloud_project:
                missing.append("GOOGLE_CLOUD_PROJECT")
            if missing:
                raise ValueError(
                    f"Missing required storage configuration: {', '.join(missing)}. "
                    "Set the corresponding environment variables."
                )


# Global config instance
config = Config()
