from typing import Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./metro_ops.db"
    DATABASE_SSL: bool = False
    SQL_ECHO: bool = False
    REDIS_URL: Optional[str] = None

    STORAGE_BACKEND: str = "local"  # local, minio
    UPLOAD_DIR: str = "uploads"
    MINIO_ENDPOINT: Optional[str] = None
    MINIO_ACCESS_KEY: Optional[str] = None
    MINIO_SECRET_KEY: Optional[str] = None
    MINIO_BUCKET: str = "incident-attachments"
    MINIO_SECURE: bool = False

    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    API_PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # strict: only the next stage of the review chain (a captain cannot move a
    # DRAFT to PENDING_ADMIN); permissive: reviewers may set any status
    INCIDENT_TRANSITION_POLICY: str = "strict"
    INCIDENT_DETAIL_POLICY: str = "organization"  # organization, scoped

    @property
    def ASYNC_DATABASE_URL(self) -> str:
        url = self.DATABASE_URL
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://"):]
        if url.startswith("postgresql://"):
            url = "postgresql+asyncpg://" + url[len("postgresql://"):]
        return url

    class Config:
        env_file = ".env"

settings = Settings()
