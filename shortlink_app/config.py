from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Application
    app_name: str = "Short Link Service"
    app_version: str = "1.0.0"

    # Public URL the short links are served from.
    # The short-link domain is this value without scheme or trailing slash.
    app_url: str = "https://s.zxd.ai"
    short_link_path: str = "s"

    # Database
    database_url: str = "sqlite:///./shortlinks.db"
    database_pool_timeout: int = 10  # Seconds to wait for a pooled connection

    # Short code allocation
    short_code_length: int = 6
    max_code_attempts: int = 10

    # Redirect path
    activity_record_timeout: float = 2.0  # Max seconds a redirect waits on recording
    landing_path: str = "/"
    frozen_path: str = "/frozen"

    # Cache settings (redirect targets only)
    cache_backend: str = "null"  # Options: "redis", "memory", "null"
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl: int = 300  # Cache TTL in seconds

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def short_link_domain(self) -> str:
        """Domain part stored in every short link, e.g. ``s.zxd.ai``"""
        domain = self.app_url.strip()
        for scheme in ("https://", "http://"):
            if domain.startswith(scheme):
                domain = domain[len(scheme):]
                break
        return domain.rstrip("/")

    @property
    def public_scheme(self) -> str:
        return "http" if self.app_url.strip().startswith("http://") else "https"


# Create settings instance
settings = Settings()
