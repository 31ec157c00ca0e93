"""
Configuration Management
Loads settings from environment variables with type validation
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "Document Governance Portal"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Security (tokens are issued by the identity provider with the shared secret)
    SECRET_KEY: str = Field(..., min_length=32)
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 15

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8000",
    ]

    # Database
    DATABASE_URL: Optional[str] = None
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "docgov"
    POSTGRES_PASSWORD: str = "docgov_password"
    POSTGRES_DB: str = "docgov"
    DB_COMMAND_TIMEOUT_SECONDS: float = 10.0

    @property
    def SQLALCHEMY_DATABASE_URL(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # MinIO
    MINIO_ENDPOINT: str = "localhost:9000"
    MINIO_ACCESS_KEY: str = "minioadmin"
    MINIO_SECRET_KEY: str = "minioadmin"
    MINIO_USE_SSL: bool = False
    MINIO_BUCKET: str = "documents"
    STORAGE_TIMEOUT_SECONDS: float = 10.0

    # Magic links
    MAGIC_LINKS_ENABLED: bool = True
    MAGIC_LINK_DEFAULT_TTL_DAYS: int = 7
    MAGIC_LINK_MAX_TTL_DAYS: int = 365
    MAGIC_LINK_DEFAULT_MAX_VIEWS: Optional[int] = None
    MAGIC_LINK_TOKEN_BYTES: int = 32
    MAGIC_LINK_URL_EXPIRY_SECONDS: int = 3600

    # Document access
    DOWNLOAD_URL_EXPIRY_SECONDS: int = 3600

    # File Upload
    MAX_UPLOAD_SIZE_MB: int = 50
    ALLOWED_CONTENT_TYPES: List[str] = ["application/pdf"]

    # Monitoring
    ENABLE_METRICS: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid = ["development", "testing", "staging", "production"]
        if v not in valid:
            raise ValueError(f"ENVIRONMENT must be one of {valid}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}")
        return v_upper

    @field_validator("MAGIC_LINK_TOKEN_BYTES")
    @classmethod
    def validate_token_bytes(cls, v: int) -> int:
        # 16 bytes = 128 bits of entropy; 128 bytes encode to 171 chars, inside the token column
        if v < 16 or v > 128:
            raise ValueError("MAGIC_LINK_TOKEN_BYTES must be between 16 and 128")
        return v

    @field_validator("MAGIC_LINK_DEFAULT_TTL_DAYS", "MAGIC_LINK_MAX_TTL_DAYS")
    @classmethod
    def validate_ttl_days(cls, v: int) -> int:
        if v < 1:
            raise ValueError("magic link TTL must be at least one day")
        return v

    @field_validator("MAGIC_LINK_URL_EXPIRY_SECONDS", "DOWNLOAD_URL_EXPIRY_SECONDS")
    @classmethod
    def validate_url_expiry(cls, v: int) -> int:
        if not 1 <= v <= 3600:
            raise ValueError("presigned URL expiry must be between 1 and 3600 seconds")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "allow"


# Global settings instance
settings = Settings()
