"""
Owner-scoped book collection operations.

Every read and write goes through ``BookStore`` methods that filter by the
caller's user id as well as the book id, so a book owned by someone else
behaves exactly like a book that does not exist.
"""

from datetime import datetime
from typing import Callable, List, Optional, Tuple

import structlog

from .database import BookStore
from .exceptions import ConflictError, NotFoundError, ValidationError
from .isbn_lookup import GoogleBooksClient
from .models import Book, BookFields, Identity, is_valid_isbn, normalize_isbn, utcnow

logger = structlog.get_logger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_AUTHOR = "Unknown Author"


def clamp_pagination(page: Optional[int], page_size: Optional[int]) -> Tuple[int, int]:
    """
    Page below 1 becomes 1; a page size outside [1, 100] falls back to 20.
    Out-of-range values are corrected, never rejected.
    """
    if page is None or page < 1:
        page = DEFAULT_PAGE
    if page_size is None or page_size < 1 or page_size > MAX_PAGE_SIZE:
        page_size = DEFAULT_PAGE_SIZE
    return page, page_size


def secure_url(url: Optional[str]) -> Optional[str]:
    """Upgrade an http:// URL to https://."""
    if url and url.startswith("http://"):
        return "https://" + url[len("http://"):]
    return url


class BookService:
    """Books component."""

    def __init__(
        self,
        book_store: BookStore,
        lookup_client: GoogleBooksClient,
        clock: Callable[[], datetime] = utcnow
    ):
        self.book_store = book_store
        self.lookup_client = lookup_client
        self.clock = clock

    async def list(
        self,
        identity: Identity,
        page: Optional[int] = DEFAULT_PAGE,
        page_size: Optional[int] = DEFAULT_PAGE_SIZE,
        search: Optional[str] = None,
        category: Optional[str] = None
    ) -> Tuple[List[Book], int, int, int]:
        """
        One page of the caller's books, newest first.

        Returns:
            (books, total matching count, effective page, effective page size)
        """
        page, page_size = clamp_pagination(page, page_size)
        books, total = await self.book_store.find_page(
            identity.user_id, page, page_size, search=search, category=category
        )
        return books, total, page, page_size

    async def get_by_id(self, identity: Identity, book_id: str) -> Book:
        """
        Raises:
            NotFoundError: no such book owned by the caller
        """
        book = await self.book_store.find_owned(book_id, identity.user_id)
        if book is None:
            raise NotFoundError()
        return book

    async def create_from_isbn(self, identity: Identity, isbn: str) -> Book:
        """
        Add a book using Google Books metadata.

        Raises:
            ValidationError: not 10 or 13 digits once hyphens and spaces are removed
            ConflictError: the caller already has a book with this ISBN
            ConfigurationError: no lookup credential configured
            LookupUnavailableError: the lookup service failed
            LookupNotFoundError: the lookup found nothing usable
        """
        clean_isbn = normalize_isbn(isbn or "")
        if not is_valid_isbn(clean_isbn):
            raise ValidationError("ISBN must be 10 or 13 digits")

        await self._ensure_isbn_free(identity, clean_isbn)

        volume = await self.lookup_client.lookup(clean_isbn)

        book = Book(
            user_id=identity.user_id,
            isbn=clean_isbn,
            title=volume.title or UNKNOWN_TITLE,
            author=(volume.authors or [UNKNOWN_AUTHOR])[0],
            published_date=volume.published_date,
            description=volume.description,
            categories=list(volume.categories or []),
            cover_url=secure_url(volume.image_links.thumbnail if volume.image_links else None),
            created_at=self.clock(),
        )
        book = await self.book_store.insert(book)

        logger.info("Book added successfully", isbn=clean_isbn, book_id=book.id, user_id=identity.user_id)
        return book

    async def create(self, identity: Identity, fields: BookFields) -> Book:
        """
        Add a book from client-supplied fields.

        Raises:
            ValidationError: blank title/author or malformed ISBN
            ConflictError: the caller already has a book with this ISBN
        """
        fields = self._validate_fields(fields)
        if fields.isbn:
            await self._ensure_isbn_free(identity, fields.isbn)

        book = Book(
            user_id=identity.user_id,
            isbn=fields.isbn,
            title=fields.title,
            author=fields.author,
            published_date=fields.published_date,
            description=fields.description,
            categories=list(fields.categories),
            cover_url=fields.cover_url,
            created_at=self.clock(),
        )
        book = await self.book_store.insert(book)

        logger.info("Book created", book_id=book.id, user_id=identity.user_id)
        return book

    async def update(self, identity: Identity, book_id: str, fields: BookFields) -> None:
        """
        Replace the editable fields of one of the caller's books.

        Raises:
            ValidationError: blank title/author or malformed ISBN
            NotFoundError: no such book owned by the caller
        """
        fields = self._validate_fields(fields)

        if await self.book_store.find_owned(book_id, identity.user_id) is None:
            raise NotFoundError()

        # The book can vanish between the check and the write
        if await self.book_store.update_owned(book_id, identity.user_id, fields) == 0:
            raise NotFoundError()

        logger.info("Book updated successfully", book_id=book_id, user_id=identity.user_id)

    async def delete(self, identity: Identity, book_id: str) -> None:
        """
        Raises:
            NotFoundError: no such book owned by the caller
        """
        if await self.book_store.delete_owned(book_id, identity.user_id) == 0:
            raise NotFoundError()

        logger.info("Book deleted successfully", book_id=book_id, user_id=identity.user_id)

    async def _ensure_isbn_free(self, identity: Identity, isbn: str) -> None:
        existing = await self.book_store.find_owned_by_isbn(identity.user_id, isbn)
        if existing is not None:
            raise ConflictError("This book is already in your collection", existing=existing)

    @staticmethod
    def _validate_fields(fields: BookFields) -> BookFields:
        """Trimmed copy of ``fields`` with a normalized ISBN."""
        title = (fields.title or "").strip()
        author = (fields.author or "").strip()
        if not title:
            raise ValidationError("Title is required")
        if not author:
            raise ValidationError("Author is required")

        isbn = None
        if fields.isbn and fields.isbn.strip():
            isbn = normalize_isbn(fields.isbn)
            if not is_valid_isbn(isbn):
                raise ValidationError("ISBN must be 10 or 13 digits")

        categories = [tag.strip() for tag in fields.categories if tag and tag.strip()]

        return fields.model_copy(update={
            "title": title,
            "author": author,
            "isbn": isbn,
            "categories": categories,
        })
