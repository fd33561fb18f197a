"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Supabase (blob storage)
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    supabase_bucket: str = "wine-images"

    # Blob storage: "supabase" or "local"
    blob_backend: str = "local"
    local_blob_dir: str = ""
    public_base_url: str = "http://localhost:8001"

    # Job store: "memory" or "redis"
    kv_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    job_ttl_seconds: int = 3600
    max_entry_bytes: int = 1024 * 1024
    detail_key_suffix: str = "_details"

    # OpenAI
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    openai_timeout_seconds: float = 60.0

    # Analysis
    max_items: int = 10
    max_image_bytes: int = 10 * 1024 * 1024
    enrichment_timeout_seconds: Optional[float] = 90.0

    # Worker dispatch: "local" or "http"
    dispatch_mode: str = "local"
    worker_url: str = "http://localhost:8001/api/v1/worker/analyze"
    dispatch_timeout_seconds: float = 5.0
    local_worker_concurrency: int = 2

    compute_port: int = 8001
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
