from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from typing import Optional
import os
from pathlib import Path

root_dir = Path(__file__).parent.parent
env_path = root_dir / ".env"
load_dotenv(env_path)

class Settings(BaseSettings):
    # Application
    APP_NAME: str = "KPI Sync Backend"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # PostgreSQL Database
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "kpi_dashboard"
    DATABASE_URL: Optional[str] = None

    # Chiffrement des configurations d'intégration
    ENCRYPTION_KEY: Optional[str] = None

    # Clients HTTP des adapters
    HTTP_TIMEOUT_SECONDS: float = 30.0
    HTTP_USER_AGENT: str = "KPI-Dashboard/1.0"

    # Worker de synchronisation
    SYNC_POLL_INTERVAL_SECONDS: float = 30.0
    SYNC_CONCURRENCY_LIMIT: int = 3
    SYNC_RATE_LIMIT_DELAY_SECONDS: float = 1.0
    SYNC_BATCH_SIZE: int = 10
    SYNC_SHUTDOWN_GRACE_SECONDS: float = 30.0
    SYNC_WORKER_EMBEDDED: bool = True

    # Database URL
    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = "ignore"
        case_sensitive = True

try:
    settings = Settings()
except Exception as e:
    print(f"❌ Settings creation failed: {e}")
    print(f"❌ Available environment variables:")
    for key, value in os.environ.items():
        if any(prefix in key for prefix in ['POSTGRES', 'DATABASE', 'ENCRYPTION', 'SYNC', 'HTTP', 'APP', 'DEBUG', 'LOG']):
            print(f"   {key}: {'*' * min(8, len(value)) if 'KEY' in key or 'PASSWORD' in key or 'DATABASE_URL' in key else value}")
    raise
