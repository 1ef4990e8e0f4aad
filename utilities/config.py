"""
Configuration management using environment variables.
Handles database, token, lookup and logging settings with validation and defaults.
"""

from typing import Optional
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """
    Core application settings.
    Uses pydantic BaseSettings for environment variable management.
    Instances are immutable and handed to each component at construction.
    """

    # MongoDB Configuration
    mongodb_url: str = Field(default="mongodb://localhost:27017")
    mongodb_database: str = Field(default="bookshelf")
    mongodb_users_collection: str = Field(default="users")
    mongodb_books_collection: str = Field(default="books")

    # Token Configuration
    jwt_key: str = Field(default="")
    jwt_issuer: str = Field(default="")
    jwt_audience: str = Field(default="")
    jwt_expires_in_minutes: float = Field(default=60)

    # Password hashing
    bcrypt_rounds: int = Field(default=12)

    # Google Books lookup
    google_books_api_key: str = Field(default="")
    google_books_base_url: str = Field(default="https://www.googleapis.com/books/v1/volumes")
    request_timeout: float = Field(default=10.0)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    # Development/Testing
    debug: bool = Field(default=False)

    @field_validator('bcrypt_rounds')
    @classmethod
    def validate_bcrypt_rounds(cls, v):
        """bcrypt accepts cost factors 4..31; above 16 logins become unusably slow."""
        if v < 4 or v > 16:
            raise ValueError('bcrypt_rounds must be between 4 and 16')
        return v

    @field_validator('request_timeout')
    @classmethod
    def validate_timeout(cls, v):
        """Ensure timeout is reasonable."""
        if v <= 0 or v > 120:
            raise ValueError('request_timeout must be between 0 and 120 seconds')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "frozen": True,
    }

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None


# Global configuration instance, read once by the application entry points
config = AppConfig()
