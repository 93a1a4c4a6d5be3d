from pydantic_settings import BaseSettings
from typing import List, Any
import json
from pathlib import Path


def parse_csv_list(v: Any) -> List[str]:
    """Parse a list setting from a JSON array or a comma-separated string"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [item.strip() for item in v.split(',') if item.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "DigiLib"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str
    DB_ECHO: bool = False

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours
    BCRYPT_ROUNDS: int = 12  # 4 for dev (fast), 12 for prod (secure)

    # ==========================================
    # Storage Configuration
    # ==========================================
    STORAGE_MODE: str = "local"  # "local", "s3", or "minio"
    LOCAL_STORAGE_DIR: str = "storage"
    PUBLIC_FILES_URL: str = "http://localhost:8000/api/v1/files"

    # AWS S3 / MinIO
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    S3_BUCKET_NAME: str = "digilib-materials"
    MINIO_ENDPOINT: str = "localhost:9000"
    S3_PUBLIC_URL: str = ""  # Empty means derive from bucket/region or MinIO endpoint

    STORAGE_DELETE_RETRIES: int = 3
    STORAGE_RETRY_BASE_DELAY: float = 1.0  # seconds

    # ==========================================
    # File Upload
    # ==========================================
    MAX_UPLOAD_SIZE: int = 52428800  # 50MB
    ALLOWED_CONTENT_TYPES_STR: str = "application/pdf"

    @property
    def ALLOWED_CONTENT_TYPES(self) -> List[str]:
        """Parse allowed upload content types from comma-separated string"""
        return parse_csv_list(self.ALLOWED_CONTENT_TYPES_STR)

    # ==========================================
    # Library
    # ==========================================
    SEED_ON_STARTUP: bool = True
    ADMIN_APPROVED_LIST_LIMIT: int = 50

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_csv_list(self.CORS_ORIGINS_STR)

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def BASE_DIR(self) -> Path:
        return Path(__file__).resolve().parent.parent.parent

    @property
    def STORAGE_DIR(self) -> Path:
        path = Path(self.LOCAL_STORAGE_DIR)
        if not path.is_absolute():
            path = self.BASE_DIR / path
        return path

    def is_dev_mode(self) -> bool:
        return self.ENVIRONMENT == "development"


# Create settings instance
settings = Settings()
