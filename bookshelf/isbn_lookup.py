"""
Google Books client for ISBN lookups.
"""

from typing import Optional

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ConfigurationError, LookupNotFoundError, LookupUnavailableError
from .models import VolumeInfo, VolumeSearchResponse

logger = structlog.get_logger(__name__)

GOOGLE_BOOKS_URL = "https://www.googleapis.com/books/v1/volumes"


class GoogleBooksClient:
    """
    Looks up volume metadata by ISBN.

    Uses the application's shared ``httpx.AsyncClient``; timeouts come from
    that client. Failures are reported immediately, never retried.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: Optional[str],
        base_url: str = GOOGLE_BOOKS_URL
    ):
        self.http_client = http_client
        self.api_key = api_key or ""
        self.base_url = base_url

    async def lookup(self, isbn: str) -> VolumeInfo:
        """
        Fetch the first matching volume for a normalized ISBN.

        Raises:
            ConfigurationError: no API key is configured
            LookupUnavailableError: transport failure, error status or unreadable body
            LookupNotFoundError: no match, or a match without volume information
        """
        if not self.api_key.strip():
            logger.error("Google Books API key is not configured")
            raise ConfigurationError("Book lookup service is not configured")

        params = {"q": f"isbn:{isbn}", "key": self.api_key}

        try:
            response = await self.http_client.get(self.base_url, params=params)
            response.raise_for_status()
            payload = VolumeSearchResponse.model_validate(response.json())
        except httpx.HTTPError as e:
            logger.error("Error calling Google Books API", isbn=isbn, error=str(e))
            raise LookupUnavailableError()
        except (ValueError, PydanticValidationError) as e:
            logger.error("Unreadable Google Books response", isbn=isbn, error=str(e))
            raise LookupUnavailableError()

        if not payload.items:
            logger.info("No Google Books match", isbn=isbn)
            raise LookupNotFoundError()

        volume_info = payload.items[0].volume_info
        if volume_info is None:
            logger.info("Google Books match without volume info", isbn=isbn)
            raise LookupNotFoundError("Book information incomplete in database")

        return volume_info
