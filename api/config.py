"""
API configuration settings.
"""

from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Bookshelf API"
    api_version: str = "1.0.0"
    api_description: str = "Personal book collection manager with ISBN lookup"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # CORS Settings
    allowed_origin: str = "http://localhost:4200"

    # Identity cookie
    cookie_name: str = "access_token"
    cookie_secure: bool = True
    cookie_path: str = "/api"

    # Logging
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "extra": "ignore",  # Ignore extra fields from .env
        "frozen": True,
    }


# Global config instance
config = APIConfig()
