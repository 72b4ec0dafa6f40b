from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    log_level: str = "INFO"
    log_json: bool = False

    database_url: str = "postgresql+psycopg://app:app@db:5432/app"
    redis_url: str = "redis://redis:6379/0"

    # bootstrap secrets for scripts/register_sources.py, the core reads secrets from webhook_sources
    github_webhook_secret: str | None = None
    stripe_webhook_secret: str | None = None
    resend_webhook_secret: str | None = None

    stripe_signature_tolerance_seconds: int = 300

    # request guards
    max_payload_kb: int = 1024
    require_json_content_type: bool = True

    # rate limiting ("redis" or "memory")
    rate_limit_enabled: bool = True
    rate_limit_backend: str = "redis"
    rate_limit_webhooks_per_min: int = 100
    rate_limit_api_per_min: int = 50

    # queue + worker
    webhook_queue_key: str = "webhooks:jobs"
    webhook_delayed_key: str = "webhooks:jobs:delayed"
    webhook_dead_letter_key: str = "webhooks:jobs:dead"
    worker_max_attempts: int = 3
    worker_backoff_base_seconds: int = 30
    worker_poll_timeout_seconds: int = 5

    events_page_default_limit: int = 20
    events_page_max_limit: int = 200

settings = Settings()
