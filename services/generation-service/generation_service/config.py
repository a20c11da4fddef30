from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    GENERATION_DATABASE_URL: str = "sqlite:///./generation.db"
    SECRET_ENCRYPTION_KEY: str = ""
    DEBUG: bool = False
    ENVIRONMENT: str = "production"

    AI_MAX_CONCURRENT_REQUESTS: int = 10
    AI_MAX_QUEUED_REQUESTS: int = 50
    AI_TIMEOUT_SECONDS: float = 60.0
    AI_RETRY_ATTEMPTS: int = 3
    AI_RETRY_DELAY_SECONDS: float = 5.0
    AI_RETRY_MAX_DELAY_SECONDS: float = 30.0
    AI_REGENERATE_ON_INVALID_OUTPUT: bool = True

    PLAN_SAVE_ATTEMPTS: int = 3
    PLAN_SAVE_RETRY_DELAY_SECONDS: float = 0.5

    TASK_TTL_SECONDS: int = 900
    ESTIMATED_GENERATION_SECONDS: int = 60

    TASK_STORE_BACKEND: Literal["redis", "memory"] = "redis"
    GENERATION_REDIS_HOST: str = "redis"
    GENERATION_REDIS_PORT: int = 6379
    GENERATION_REDIS_DB: int = 3
    GENERATION_REDIS_PASSWORD: str | None = None

    EXECUTION_BACKEND: Literal["pool", "celery"] = "pool"
    CELERY_BROKER_URL: str = "redis://redis:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/2"
    CELERY_GENERATION_QUEUE: str = "generation.llm"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @model_validator(mode="after")
    def _check_limits(self) -> "Settings":
        if self.AI_MAX_CONCURRENT_REQUESTS < 1:
            raise ValueError("AI_MAX_CONCURRENT_REQUESTS must be at least 1")
        if self.AI_MAX_QUEUED_REQUESTS < 0:
            raise ValueError("AI_MAX_QUEUED_REQUESTS must not be negative")
        if self.AI_RETRY_ATTEMPTS < 1:
            raise ValueError("AI_RETRY_ATTEMPTS must be at least 1")
        if self.PLAN_SAVE_ATTEMPTS < 1:
            raise ValueError("PLAN_SAVE_ATTEMPTS must be at least 1")
        if self.AI_TIMEOUT_SECONDS <= 0:
            raise ValueError("AI_TIMEOUT_SECONDS must be positive")
        if self.EXECUTION_BACKEND == "celery" and self.TASK_STORE_BACKEND != "redis":
            # celery workers run in other processes and cannot see an in-memory store
            raise ValueError("EXECUTION_BACKEND=celery requires TASK_STORE_BACKEND=redis")
        return self


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
