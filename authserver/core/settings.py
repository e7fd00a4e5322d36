import secrets
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Required in production:
      - DATABASE_URL
      - JWT_SECRET_KEY (auto-generated for development)

    Optional:
      - REDIS_URL: token store backing the protocol endpoints
      - GEOIP_ENABLED / GEOIP_DATABASE_PATH: MaxMind GeoLite2 city lookup
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./authserver.db"
    log_level: str = "INFO"

    # JWT verification for the user-facing endpoints
    jwt_secret_key: str = Field(
        default_factory=lambda: secrets.token_urlsafe(32),
        validation_alias="JWT_SECRET_KEY",
        description="Secret key for JWT signing. MUST be set in production.",
    )
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = Field(
        default=15,
        validation_alias="JWT_ACCESS_TOKEN_EXPIRE_MINUTES",
        description="Access token expiration in minutes",
    )

    # API prefix (kept constant for reverse-proxy routing)
    api_prefix: str = "/api"

    # Protocol endpoints served by the token engine; only these get dynamic CORS
    protocol_endpoint_prefix: str = "/oauth2/"
    cors_allowed_methods: list[str] = ["GET", "POST", "OPTIONS"]
    cors_max_age_seconds: int = Field(
        default=3600,
        description="How long browsers may cache a preflight decision",
    )

    # Token store
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        validation_alias="REDIS_URL",
    )
    token_store_key_prefix: str = "oauth2_authorization"

    # Geolocation
    geoip_enabled: bool = False
    geoip_database_path: Optional[str] = Field(
        default="/data/GeoLite2-City.mmdb",
        validation_alias="GEOIP_DATABASE_PATH",
    )

    # Display fallbacks
    unknown_client_label: str = "Unknown client"
    unknown_location_label: str = "Unknown"


settings = Settings()
