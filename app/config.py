"""Application configuration using Pydantic Settings."""
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # App
    app_name: str = "Rollcall"
    debug: bool = False
    log_level: str = "INFO"

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "rollcall"
    mongodb_timeout_ms: int = Field(default=5000, gt=0)

    # JWT
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 24 * 7
    jwt_refresh_token_expire_days: int = 30

    # CORS (comma-separated origins, e.g. "https://rollcall.example.com,http://localhost:5173")
    cors_origins: str = "http://localhost:5173"

    # Attendance
    bulk_max_updates: int = Field(default=5000, gt=0)
    # seconds a group summary or history may be served from memory; 0 disables the cache
    cache_ttl_seconds: float = Field(default=30.0, ge=0)
    # undelivered hints per realtime observer before new ones are dropped
    notification_queue_size: int = Field(default=8, ge=1)

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @model_validator(mode="after")
    def _validate_production_secrets(self):
        if not self.debug and self.jwt_secret_key in ("change-me-in-production", ""):
            raise ValueError(
                "JWT_SECRET_KEY must be set to a strong secret when DEBUG is not enabled. "
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )
        return self


settings = Settings()
