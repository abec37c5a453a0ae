from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: Optional[str] = None
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"

    pushgateway_url: Optional[str] = "http://pushgateway:9091"

    # tenants processed in parallel
    monitoring_concurrency: int = 5
    monitoring_max_retries: int = 3
    integration_max_retries: int = 3


settings = Settings()
