"""
Settings for bizos, read from the environment (and ``.env`` when present).
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """
    Names are case sensitive and match the environment variables exactly.

    get_settings() caches the instance; tests set their environment before
    the first import of bizos.
    """

    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "postgresql://localhost/bizos_dev"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40

    # JWT
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    REDIS_URL: str = "redis://localhost:6379/0"
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_BURST: int = 10

    # Without both of these the scheduler tick dispatches nothing and the
    # event bus skips workflow subscribers.
    WORKFLOW_EXECUTOR_URL: str = ""
    SCHEDULER_SECRET: str = ""
    DISPATCH_TIMEOUT_SECONDS: float = 10.0
    SCHEDULED_RUN_RETENTION_DAYS: int = 30

    CONFIRMATION_EXPIRY_MINUTES: int = 5

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
