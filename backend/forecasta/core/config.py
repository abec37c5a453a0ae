from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    project_name: str = "forecasta"
    env: str = "development"

    # unset -> datastore-backed endpoints answer 503
    database_url: Optional[str] = None

    admin_api_key: str = "dev-admin-key"

    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 60.0

    meta_ads_library_token: Optional[str] = None
    census_api_key: Optional[str] = None
    signals_api_url: Optional[str] = None
    http_timeout_seconds: float = 10.0

    app_base_url: str = "http://localhost:3000"

    report_dir: str = "/data/reports"
    report_generate_pdf: bool = False

    log_level: str = "INFO"
    log_json: bool = False

    snapshot_history: int = 10


settings = Settings()
