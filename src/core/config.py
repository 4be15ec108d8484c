
from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = Field("receipt-scan-service", alias="APP_NAME")
    app_env: str = Field("dev", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Vision model (Anthropic Messages API)
    anthropic_api_key: str | None = Field(default=None, alias="ANTHROPIC_API_KEY")
    anthropic_model: str = Field("claude-sonnet-4-20250514", alias="ANTHROPIC_MODEL")
    anthropic_base_url: str = Field("https://api.anthropic.com", alias="ANTHROPIC_BASE_URL")
    anthropic_version: str = Field("2023-06-01", alias="ANTHROPIC_VERSION")
    extractor_max_tokens: int = Field(1024, alias="EXTRACTOR_MAX_TOKENS")
    extractor_timeout_seconds: float = Field(60.0, alias="EXTRACTOR_TIMEOUT_SECONDS")

    # PDF rendering
    pdf_render_scale: float = Field(2.0, alias="PDF_RENDER_SCALE")
    pdf_jpeg_quality: int = Field(90, alias="PDF_JPEG_QUALITY")

    # Blob storage
    blob_allowed_host_suffix: str = Field(".public.blob.vercel-storage.com", alias="BLOB_ALLOWED_HOST_SUFFIX")
    blob_api_url: str = Field("https://blob.vercel-storage.com", alias="BLOB_API_URL")
    blob_read_write_token: str | None = Field(default=None, alias="BLOB_READ_WRITE_TOKEN")
    stage_page_renders: bool = Field(True, alias="STAGE_PAGE_RENDERS")  # Upload rendered PDF pages as temp blobs

    # Receipt scan rate limits (per tenant)
    scan_limit_per_minute: int | None = Field(10, alias="SCAN_LIMIT_PER_MINUTE")
    scan_limit_per_hour: int | None = Field(60, alias="SCAN_LIMIT_PER_HOUR")
    scan_limit_per_day: int | None = Field(100, alias="SCAN_LIMIT_PER_DAY")
    scan_limit_per_month: int | None = Field(200, alias="SCAN_LIMIT_PER_MONTH")
    usage_db_path: str | None = Field(default=None, alias="USAGE_DB_PATH")  # Unset = in-memory usage tracking

    # Teams (rate limit alerts)
    teams_webhook_url: str | None = Field(default=None, alias="TEAMS_WEBHOOK_URL")

    # CORS allowed origins (comma-separated list for production deployment)
    cors_origins: str = Field("http://localhost:5173,http://127.0.0.1:5173", alias="CORS_ORIGINS")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

settings = Settings()
