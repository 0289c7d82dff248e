# backend/config.py

from pydantic import Field, MongoDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """
    Application configuration settings loaded from environment variables.
    Provides validation and type casting for all settings.
    """

    service_name: str = Field(default="options-backend", alias="SERVICE_NAME")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    json_logs: bool = Field(default=False, alias="JSON_LOGS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    mongodb_url: MongoDsn = Field(..., alias="MONGODB_URL")
    mongodb_database: str = Field(..., alias="MONGO_DATABASE")

    # Identity of the plugin whose options this service manages.
    plugin_name: str = Field(default="akamai", alias="PLUGIN_NAME")
    plugin_version: str | None = Field(default=None, alias="PLUGIN_VERSION")

    nonce_secret: str = Field(..., alias="NONCE_SECRET", min_length=16)
    nonce_lifetime_seconds: int = Field(
        default=86400, alias="NONCE_LIFETIME_SECONDS", gt=1
    )
    admin_origin: str | None = Field(default=None, alias="ADMIN_ORIGIN")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = AppConfig()
