import json
from typing import Annotated, List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # FastAPI Configuration
    PROJECT_NAME: str = "Digital Sky Drone Import API"
    VERSION: str = "1.0.0"
    API_BASE_PATH: str = "/api"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # JWT Configuration
    JWT_SECRET_KEY: str = Field(
        ...,
        description="Secret key for JWT tokens - must be cryptographically secure (min 32 chars)",
    )
    JWT_ALGORITHM: str = "HS256"

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def validate_jwt_secret_key(cls, v: str) -> str:
        """Validate JWT secret key has minimum length for security."""
        if len(v) < 32:
            raise ValueError(
                "JWT_SECRET_KEY must be at least 32 characters long for security. "
                'Generate a secure key with: python -c "import secrets; print(secrets.token_hex(32))"'
            )
        return v

    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(
        default=60, description="Access token expiration in minutes"
    )

    ADMIN_ROLE: str = Field(
        default="ADMIN", description="Role name allowed to approve and list all applications"
    )

    ENABLE_AUTH_AUDIT_LOGGING: bool = Field(
        default=False, description="Log every token verification"
    )

    # Database Configuration
    DATABASE_URL: str = "sqlite+aiosqlite:///./digitalsky.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes
    DB_ECHO: bool = False

    # Document Storage Configuration
    STORAGE_BACKEND: str = "local"  # "local" (default) or "gcs"
    STORAGE_ROOT: str = "./storage"
    GCP_PROJECT_ID: Optional[str] = None
    GCS_BUCKET_NAME: str = "digitalsky-application-documents"
    MAX_DOCUMENT_SIZE: int = 10 * 1024 * 1024  # 10MB in bytes

    @field_validator("STORAGE_BACKEND")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("local", "gcs"):
            raise ValueError("STORAGE_BACKEND must be 'local' or 'gcs'")
        return v

    # CORS Settings
    CORS_ORIGINS: Annotated[List[str], NoDecode] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    CORS_CREDENTIALS: bool = True
    CORS_METHODS: List[str] = ["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"]
    CORS_HEADERS: List[str] = [
        "Authorization",
        "Content-Type",
        "X-Requested-With",
        "Accept",
        "Origin",
        "Cache-Control",
    ]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or JSON array."""
        if isinstance(v, str):
            if v.startswith("["):
                return json.loads(v)
            return [x.strip() for x in v.split(",") if x.strip()]
        return v

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # json or text

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def is_development(self) -> bool:
        """Check if the application is running in development mode."""
        return self.ENVIRONMENT.lower() in ["development", "dev", "local"]

    @property
    def is_production(self) -> bool:
        """Check if the application is running in production mode."""
        return self.ENVIRONMENT.lower() in ["production", "prod"]

    @property
    def application_base_path(self) -> str:
        """Base path of the import drone application resource."""
        return f"{self.API_BASE_PATH}/applicationForm/importDroneApplication"


# Global settings instance
settings = Settings()
