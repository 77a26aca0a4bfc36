"""
Centralized application settings using Pydantic.

Environment variables are read once per process and validated. Every
field has a default so the package imports cleanly; the factory reads
the cached instances when it wires a generator.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings

from printgen.core import config


class RenderSettings(BaseSettings):
    """Remote render and merge function configuration."""

    RENDER_FUNCTION_URL: str = "http://localhost:9000/render"
    MERGE_FUNCTION_URL: str = "http://localhost:9000/merge"
    SOURCE_BASE_URL: str = "http://localhost:3004/qr/pdf"
    RENDER_TIMEOUT_SECONDS: float = config.RENDER_TIMEOUT_SECONDS
    RENDER_VERIFY_SSL: bool = True

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}


class S3Settings(BaseSettings):
    """S3/MinIO storage configuration for intermediate artifacts."""

    S3_ENDPOINT: str = "localhost:9000"
    S3_ACCESS_KEY: str = ""
    S3_SECRET_KEY: SecretStr = SecretStr("")
    S3_BUCKET: str = "printgen-intermediate"
    S3_SECURE: bool = True
    S3_REGION: str = "us-east-1"

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}


class PipelineSettings(BaseSettings):
    """Chunking, concurrency and post-processing knobs."""

    MAX_PAGES_PER_CHUNK: int = config.MAX_PAGES_PER_CHUNK
    MAX_CONCURRENT_CHUNKS: int = config.MAX_CONCURRENT_CHUNKS
    RENDER_MAX_ATTEMPTS: int = config.RENDER_MAX_ATTEMPTS
    RENDER_BACKOFF_SECONDS: float = config.RENDER_BACKOFF_SECONDS
    RENDER_BACKOFF_STRATEGY: str = "linear"
    JOB_TIMEOUT_SECONDS: float = config.JOB_TIMEOUT_SECONDS
    BLEED_MM: float = config.DEFAULT_BLEED_MM
    COMPRESS_OUTPUT: bool = True
    OUTPUT_DIR: str = "./public/pdf"
    ARTIFACT_PREFIX: str = "printgen"

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}

    @property
    def output_dir(self) -> Path:
        """Resolve output directory path."""
        return Path(self.OUTPUT_DIR).resolve()


class AppSettings(BaseSettings):
    """General application settings."""

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}


@lru_cache(maxsize=1)
def get_render_settings() -> RenderSettings:
    return RenderSettings()


@lru_cache(maxsize=1)
def get_s3_settings() -> S3Settings:
    return S3Settings()


@lru_cache(maxsize=1)
def get_pipeline_settings() -> PipelineSettings:
    return PipelineSettings()


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    return AppSettings()
