"""
Query builders for the books and users collections.

All field names of the stored documents live here, so the rest of the code
never assembles MongoDB filters from strings. Every book filter starts
from the owner, which is what keeps one user's books invisible to another.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING

from .models import Book, BookFields, User

# Stored document field names
ID = "_id"
USER_ID = "userId"
ISBN = "ISBN"
TITLE = "title"
AUTHOR = "author"
PUBLISHED_DATE = "publishedDate"
DESCRIPTION = "description"
CATEGORIES = "categories"
COVER_URL = "coverUrl"
CREATED_AT = "createdAt"

EMAIL = "email"
FIRST_NAME = "firstName"
LAST_NAME = "lastName"
PASSWORD = "password"

# Newest first; ObjectIds grow with insertion time
NEWEST_FIRST: List[Tuple[str, int]] = [(ID, DESCENDING)]


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse an id string, or None when it is not a valid ObjectId."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def owner_filter(user_id: str) -> Dict[str, Any]:
    """Every book owned by the user."""
    owner = to_object_id(user_id)
    return {USER_ID: owner if owner is not None else user_id}


def owned_book_filter(book_id: str, user_id: str) -> Optional[Dict[str, Any]]:
    """
    One book by id, restricted to its owner.

    Returns None when ``book_id`` cannot be an id at all; callers treat
    that exactly like a missing book.
    """
    object_id = to_object_id(book_id)
    if object_id is None:
        return None
    return {ID: object_id, **owner_filter(user_id)}


def owned_isbn_filter(user_id: str, isbn: str) -> Dict[str, Any]:
    """The caller's book with this ISBN, if any."""
    return {**owner_filter(user_id), ISBN: isbn}


def book_list_filter(
    user_id: str,
    search: Optional[str] = None,
    category: Optional[str] = None
) -> Dict[str, Any]:
    """
    Filter for the book listing.

    ``search`` is a case-insensitive substring match on title or author;
    ``category`` must equal one of the book's tags exactly.
    """
    query = owner_filter(user_id)

    if search and search.strip():
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        query["$or"] = [{TITLE: pattern}, {AUTHOR: pattern}]

    if category and category.strip():
        # Equality against an array field matches any element
        query[CATEGORIES] = category.strip()

    return query


def book_update(fields: BookFields) -> Dict[str, Any]:
    """``$set`` document replacing every editable field."""
    return {
        "$set": {
            TITLE: fields.title,
            AUTHOR: fields.author,
            PUBLISHED_DATE: fields.published_date,
            DESCRIPTION: fields.description,
            CATEGORIES: list(fields.categories),
            COVER_URL: fields.cover_url,
            ISBN: fields.isbn,
        }
    }


def book_to_document(book: Book) -> Dict[str, Any]:
    """Stored form of a book, without ``_id``."""
    return {
        USER_ID: owner_filter(book.user_id)[USER_ID],
        ISBN: book.isbn,
        TITLE: book.title,
        AUTHOR: book.author,
        PUBLISHED_DATE: book.published_date,
        DESCRIPTION: book.description,
        CATEGORIES: list(book.categories),
        COVER_URL: book.cover_url,
        CREATED_AT: book.created_at,
    }


def book_from_document(document: Dict[str, Any]) -> Book:
    return Book(
        id=str(document[ID]),
        user_id=str(document[USER_ID]),
        isbn=document.get(ISBN),
        title=document.get(TITLE, ""),
        author=document.get(AUTHOR, ""),
        published_date=document.get(PUBLISHED_DATE),
        description=document.get(DESCRIPTION),
        categories=document.get(CATEGORIES) or [],
        cover_url=document.get(COVER_URL),
        created_at=document[CREATED_AT],
    )


def email_filter(email: str) -> Dict[str, Any]:
    return {EMAIL: email}


def user_id_filter(user_id: str) -> Optional[Dict[str, Any]]:
    object_id = to_object_id(user_id)
    if object_id is None:
        return None
    return {ID: object_id}


def user_to_document(user: User) -> Dict[str, Any]:
    return {
        EMAIL: user.email,
        FIRST_NAME: user.first_name,
        LAST_NAME: user.last_name,
        PASSWORD: user.password_hash,
        CREATED_AT: user.created_at,
    }


def user_from_document(document: Dict[str, Any]) -> User:
    return User(
        id=str(document[ID]),
        email=document[EMAIL],
        first_name=document.get(FIRST_NAME, ""),
        last_name=document.get(LAST_NAME, ""),
        password_hash=document[PASSWORD],
        created_at=document[CREATED_AT],
    )
