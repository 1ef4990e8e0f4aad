"""
MongoDB access for users and books.
Handles connection, indexing, and the owner-scoped CRUD operations.
"""

from typing import Any, Dict, List, Optional, Tuple

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import ConnectionFailure, DuplicateKeyError

from . import queries
from .exceptions import DuplicateEmailError
from .models import Book, BookFields, User

logger = structlog.get_logger(__name__)


class MongoDBManager:
    """
    Async MongoDB connection manager.
    Owns the pooled client shared by every request.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        users_collection: str = "users",
        books_collection: str = "books"
    ):
        """
        Initialize MongoDB manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            users_collection: Name of the users collection
            books_collection: Name of the books collection
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.users_collection_name = users_collection
        self.books_collection_name = books_collection
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB and make sure indexes exist."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url, tz_aware=True)
            self.database = self.client[self.database_name]

            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    @property
    def users(self) -> AsyncIOMotorCollection:
        return self.database[self.users_collection_name]

    @property
    def books(self) -> AsyncIOMotorCollection:
        return self.database[self.books_collection_name]

    async def _create_indexes(self) -> None:
        """
        Create indexes for the owner-scoped query patterns.
        The unique email index is the store-level guard against two
        registrations racing past the duplicate pre-check.
        """
        try:
            await self.users.create_index(queries.EMAIL, unique=True)

            await self.books.create_index(queries.USER_ID)
            await self.books.create_index([(queries.USER_ID, ASCENDING), (queries.ISBN, ASCENDING)])
            await self.books.create_index([(queries.USER_ID, ASCENDING), (queries.CATEGORIES, ASCENDING)])

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            return {"status": "healthy"}
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}


class UserStore:
    """Credential store over the users collection."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def find_by_email(self, email: str) -> Optional[User]:
        document = await self.collection.find_one(queries.email_filter(email))
        return queries.user_from_document(document) if document else None

    async def find_by_id(self, user_id: str) -> Optional[User]:
        query = queries.user_id_filter(user_id)
        if query is None:
            return None
        document = await self.collection.find_one(query)
        return queries.user_from_document(document) if document else None

    async def insert(self, user: User) -> User:
        """
        Insert a user and return it with its assigned id.

        Raises:
            DuplicateEmailError: the unique email index rejected the insert
        """
        try:
            result = await self.collection.insert_one(queries.user_to_document(user))
        except DuplicateKeyError:
            logger.warning("Duplicate email rejected by unique index")
            raise DuplicateEmailError()
        return user.model_copy(update={"id": str(result.inserted_id)})


class BookStore:
    """Book store over the books collection. Every method is owner-scoped."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def find_page(
        self,
        user_id: str,
        page: int,
        page_size: int,
        search: Optional[str] = None,
        category: Optional[str] = None
    ) -> Tuple[List[Book], int]:
        """
        One page of the caller's books, newest first.

        Returns:
            The page and the total number of matching books
        """
        query = queries.book_list_filter(user_id, search, category)
        total = await self.collection.count_documents(query)

        skip = (page - 1) * page_size
        cursor = self.collection.find(query).sort(queries.NEWEST_FIRST).skip(skip).limit(page_size)
        documents = await cursor.to_list(length=page_size)

        return [queries.book_from_document(doc) for doc in documents], total

    async def find_owned(self, book_id: str, user_id: str) -> Optional[Book]:
        query = queries.owned_book_filter(book_id, user_id)
        if query is None:
            return None
        document = await self.collection.find_one(query)
        return queries.book_from_document(document) if document else None

    async def find_owned_by_isbn(self, user_id: str, isbn: str) -> Optional[Book]:
        document = await self.collection.find_one(queries.owned_isbn_filter(user_id, isbn))
        return queries.book_from_document(document) if document else None

    async def insert(self, book: Book) -> Book:
        result = await self.collection.insert_one(queries.book_to_document(book))
        return book.model_copy(update={"id": str(result.inserted_id)})

    async def update_owned(self, book_id: str, user_id: str, fields: BookFields) -> int:
        """Replace the editable fields. Returns the number of matched books."""
        query = queries.owned_book_filter(book_id, user_id)
        if query is None:
            return 0
        result = await self.collection.update_one(query, queries.book_update(fields))
        return result.matched_count

    async def delete_owned(self, book_id: str, user_id: str) -> int:
        """Delete in a single filtered operation. Returns the number deleted."""
        query = queries.owned_book_filter(book_id, user_id)
        if query is None:
            return 0
        result = await self.collection.delete_one(query)
        return result.deleted_count
