"""
FastAPI main application for the Bookshelf API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import httpx
import structlog
from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import auth
from api.auth import clear_auth_cookie, get_current_identity, set_auth_cookie
from api.config import config as api_config
from api.models import (
    AuthResponse, ErrorResponse, HealthResponse, LoginRequest,
    MessageResponse, RegisterRequest
)
from bookshelf.auth_service import AuthService
from bookshelf.book_service import BookService
from bookshelf.database import BookStore, MongoDBManager, UserStore
from bookshelf.exceptions import BookshelfError
from bookshelf.isbn_lookup import GoogleBooksClient
from bookshelf.models import AuthResult, Book, BookFields, Identity
from bookshelf.passwords import PasswordHasher
from bookshelf.tokens import TokenService
from utilities.config import config
from utilities.logger import setup_logging

logger = structlog.get_logger(__name__)

PAGING_HEADERS = ["X-Total-Count", "X-Page", "X-Page-Size"]

# Set during startup
db_manager: Optional[MongoDBManager] = None
auth_service: Optional[AuthService] = None
book_service: Optional[BookService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global db_manager, auth_service, book_service

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger.info("Starting Bookshelf API")

    token_service = TokenService(config)
    try:
        token_service.check_configuration()
    except BookshelfError as e:
        logger.error("Invalid token configuration", error=e.message)
        raise

    db_manager = MongoDBManager(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database,
        users_collection=config.mongodb_users_collection,
        books_collection=config.mongodb_books_collection
    )
    try:
        await db_manager.connect()
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    http_client = httpx.AsyncClient(
        timeout=config.request_timeout,
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=100)
    )

    auth.init_token_service(token_service)
    auth_service = AuthService(
        UserStore(db_manager.users),
        token_service,
        PasswordHasher(rounds=config.bcrypt_rounds)
    )
    book_service = BookService(
        BookStore(db_manager.books),
        GoogleBooksClient(http_client, config.google_books_api_key, config.google_books_base_url)
    )

    yield

    logger.info("Shutting down Bookshelf API")
    await http_client.aclose()
    await db_manager.disconnect()


app = FastAPI(
    title=api_config.api_title,
    description="""
    Personal book collection manager.

    ## Features

    * **Accounts**: register, log in, refresh and log out
    * **Books**: list, search, filter, add, edit and remove your books
    * **ISBN lookup**: add a book from its ISBN using Google Books metadata

    ## Authentication

    Login sets an HTTP-only cookie carrying a signed token. Clients that
    cannot use cookies may send the token in the Authorization header:

    ```
    Authorization: Bearer your_token_here
    ```
    """,
    version=api_config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[api_config.allowed_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=PAGING_HEADERS,
)


# Exception handlers
@app.exception_handler(BookshelfError)
async def bookshelf_exception_handler(request: Request, exc: BookshelfError):
    """Map a taxonomy error to its status code and message."""
    if exc.status_code >= 500:
        logger.error("Request failed", error=exc.code, message=exc.message, path=request.url.path)
    else:
        logger.info("Request rejected", error=exc.code, status_code=exc.status_code, path=request.url.path)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters are plain 400s."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(message=message).model_dump()
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Anything unexpected: full details in the log, nothing in the response."""
    logger.exception("Unhandled exception", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(message="An unexpected error occurred").model_dump()
    )


def _auth_service() -> AuthService:
    if auth_service is None:
        raise RuntimeError("Auth service not available")
    return auth_service


def _book_service() -> BookService:
    if book_service is None:
        raise RuntimeError("Book service not available")
    return book_service


def _auth_response(response: Response, result: AuthResult) -> AuthResponse:
    set_auth_cookie(response, result.token, result.expires_at)
    return AuthResponse(user=result.user, expires_at=result.expires_at)


def _book_json(book: Book) -> dict:
    return book.model_dump(by_alias=True, mode="json")


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unknown"
    if db_manager:
        health_info = await db_manager.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=api_config.api_version,
        database_status=db_status
    )


# Auth endpoints
@app.post("/api/auth/register", response_model=AuthResponse, tags=["Auth"])
async def register(body: RegisterRequest, response: Response):
    """Create an account and sign in."""
    result = await _auth_service().register(body.email, body.first_name, body.last_name, body.password)
    return _auth_response(response, result)


@app.post("/api/auth/login", response_model=AuthResponse, tags=["Auth"])
async def login(body: LoginRequest, response: Response):
    """Sign in with email and password."""
    result = await _auth_service().login(body.email, body.password)
    return _auth_response(response, result)


@app.post("/api/auth/refresh", response_model=AuthResponse, tags=["Auth"])
async def refresh(response: Response, identity: Identity = Depends(get_current_identity)):
    """Rotate the identity cookie with a fresh expiry."""
    result = await _auth_service().refresh(identity)
    return _auth_response(response, result)


@app.post("/api/auth/logout", response_model=MessageResponse, tags=["Auth"])
async def logout(response: Response):
    """Clear the identity cookie. Always succeeds."""
    _auth_service().logout()
    clear_auth_cookie(response)
    return MessageResponse(message="Logged out")


# Books endpoints
@app.get("/api/books", tags=["Books"])
async def get_books(
    page: int = 1,
    page_size: int = Query(20, alias="pageSize"),
    search: Optional[str] = None,
    category: Optional[str] = None,
    identity: Identity = Depends(get_current_identity)
):
    """
    List the caller's books, newest first.

    - **page**: Page number (values below 1 become 1)
    - **pageSize**: Items per page (1-100, otherwise 20)
    - **search**: Case-insensitive match on title or author
    - **category**: Exact category tag
    """
    books, total, page, page_size = await _book_service().list(
        identity, page=page, page_size=page_size, search=search, category=category
    )
    return JSONResponse(
        content=[_book_json(book) for book in books],
        headers={
            "X-Total-Count": str(total),
            "X-Page": str(page),
            "X-Page-Size": str(page_size),
        }
    )


@app.get("/api/books/{book_id}", tags=["Books"])
async def get_book(book_id: str, identity: Identity = Depends(get_current_identity)):
    """Get one of the caller's books."""
    book = await _book_service().get_by_id(identity, book_id)
    return JSONResponse(content=_book_json(book))


@app.post("/api/books", status_code=status.HTTP_201_CREATED, tags=["Books"])
async def create_book(body: BookFields, identity: Identity = Depends(get_current_identity)):
    """Add a book from explicit fields."""
    book = await _book_service().create(identity, body)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=_book_json(book))


@app.post("/api/books/isbn/{isbn}", tags=["Books"])
async def add_book_by_isbn(isbn: str, identity: Identity = Depends(get_current_identity)):
    """Add a book by ISBN using Google Books metadata."""
    book = await _book_service().create_from_isbn(identity, isbn)
    return JSONResponse(content=_book_json(book))


@app.put("/api/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Books"])
async def update_book(book_id: str, body: BookFields, identity: Identity = Depends(get_current_identity)):
    """Replace the editable fields of a book."""
    await _book_service().update(identity, book_id, body)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.delete("/api/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Books"])
async def delete_book(book_id: str, identity: Identity = Depends(get_current_identity)):
    """Remove a book."""
    await _book_service().delete(identity, book_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level="info"
    )
