"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_prefix: str = "/api"

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "support_chat"

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    socketio_use_redis: bool = False  # Share Socket.IO rooms across workers

    # JWT Settings
    jwt_secret_key: str = "your-super-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 24

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Rate Limiting
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 60

    # Chat
    default_chat_subject: str = "Support Request"
    max_message_length: int = 5000
    recent_chats_limit: int = 5

    # Guest accounts created by the public chat endpoint
    guest_default_password: str = "defaultPassword123!"

    # Attachments
    upload_dir: str = "uploads/chat_files"
    max_upload_size_mb: int = 10
    allowed_upload_extensions: list[str] = [
        "jpeg", "jpg", "png", "gif", "pdf", "doc", "docx", "txt", "zip", "rar",
    ]

    @field_validator("cors_origins", "allowed_upload_extensions", mode="before")
    @classmethod
    def parse_list(cls, v):
        if isinstance(v, str):
            import json

            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
