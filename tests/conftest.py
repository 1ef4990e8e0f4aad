"""
Pytest configuration and shared fixtures.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest
from bson import ObjectId

from bookshelf.exceptions import DuplicateEmailError
from bookshelf.models import Book, BookFields, Identity, User
from bookshelf.passwords import PasswordHasher
from bookshelf.tokens import TokenService
from utilities.config import AppConfig

TEST_JWT_KEY = "test-signing-key-that-is-long-enough-0123456789"


class InMemoryUserStore:
    """Same methods as UserStore, backed by a dict."""

    def __init__(self):
        self.users: Dict[str, User] = {}

    async def find_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.email == email), None)

    async def find_by_id(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    async def insert(self, user: User) -> User:
        if await self.find_by_email(user.email) is not None:
            raise DuplicateEmailError()
        stored = user.model_copy(update={"id": str(ObjectId())})
        self.users[stored.id] = stored
        return stored


class InMemoryBookStore:
    """Same methods as BookStore, with the same owner scoping."""

    def __init__(self):
        self.books: List[Book] = []

    def _owned(self, book_id: str, user_id: str) -> Optional[Book]:
        return next((b for b in self.books if b.id == book_id and b.user_id == user_id), None)

    async def find_page(
        self,
        user_id: str,
        page: int,
        page_size: int,
        search: Optional[str] = None,
        category: Optional[str] = None
    ) -> Tuple[List[Book], int]:
        matches = [b for b in self.books if b.user_id == user_id]
        if search and search.strip():
            pattern = re.compile(re.escape(search.strip()), re.IGNORECASE)
            matches = [b for b in matches if pattern.search(b.title) or pattern.search(b.author)]
        if category and category.strip():
            matches = [b for b in matches if category.strip() in b.categories]
        matches.sort(key=lambda b: b.id, reverse=True)
        start = (page - 1) * page_size
        return matches[start:start + page_size], len(matches)

    async def find_owned(self, book_id: str, user_id: str) -> Optional[Book]:
        return self._owned(book_id, user_id)

    async def find_owned_by_isbn(self, user_id: str, isbn: str) -> Optional[Book]:
        return next((b for b in self.books if b.user_id == user_id and b.isbn == isbn), None)

    async def insert(self, book: Book) -> Book:
        stored = book.model_copy(update={"id": str(ObjectId())})
        self.books.append(stored)
        return stored

    async def update_owned(self, book_id: str, user_id: str, fields: BookFields) -> int:
        book = self._owned(book_id, user_id)
        if book is None:
            return 0
        updated = book.model_copy(update={
            "title": fields.title,
            "author": fields.author,
            "published_date": fields.published_date,
            "description": fields.description,
            "categories": list(fields.categories),
            "cover_url": fields.cover_url,
            "isbn": fields.isbn,
        })
        self.books[self.books.index(book)] = updated
        return 1

    async def delete_owned(self, book_id: str, user_id: str) -> int:
        book = self._owned(book_id, user_id)
        if book is None:
            return 0
        self.books.remove(book)
        return 1


@pytest.fixture
def app_config():
    """Application settings with a usable token configuration."""
    return AppConfig(
        jwt_key=TEST_JWT_KEY,
        jwt_issuer="bookshelf-tests",
        jwt_audience="bookshelf-clients",
        jwt_expires_in_minutes=60,
        bcrypt_rounds=4,
        google_books_api_key="test-google-key",
    )


@pytest.fixture
def token_service(app_config):
    return TokenService(app_config)


@pytest.fixture
def hasher():
    """Cheapest bcrypt cost so the suite stays fast."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def user_store():
    return InMemoryUserStore()


@pytest.fixture
def book_store():
    return InMemoryBookStore()


def make_identity(user_id: Optional[str] = None, email: str = "reader@example.com") -> Identity:
    return Identity(
        user_id=user_id or str(ObjectId()),
        email=email,
        token_id="test-token-id",
        first_name="Ada",
        last_name="Reader",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )


@pytest.fixture
def identity_factory():
    """Build identities for arbitrary user ids."""
    return make_identity


@pytest.fixture
def alice():
    return make_identity(email="alice@example.com")


@pytest.fixture
def bob():
    return make_identity(email="bob@example.com")


@pytest.fixture
def sample_volume_payload():
    """A Google Books search result with one matching volume."""
    return {
        "kind": "books#volumes",
        "totalItems": 1,
        "items": [
            {
                "id": "pD6arNyKyi8C",
                "volumeInfo": {
                    "title": "The Hobbit",
                    "authors": ["J.R.R. Tolkien", "Christopher Tolkien"],
                    "publishedDate": "2012-02-15",
                    "description": "A great modern classic and the prelude to The Lord of the Rings.",
                    "categories": ["Fiction"],
                    "imageLinks": {
                        "smallThumbnail": "http://books.google.com/books/content?id=pD6arNyKyi8C&zoom=5",
                        "thumbnail": "http://books.google.com/books/content?id=pD6arNyKyi8C&zoom=1",
                    },
                },
            }
        ],
    }
