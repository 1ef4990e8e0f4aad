"""
Registration, login and token refresh.
"""

import re

import structlog
from email_validator import EmailNotValidError, validate_email

from .database import UserStore
from .exceptions import (
    DuplicateEmailError,
    InvalidCredentialsError,
    UserNotFoundError,
    ValidationError,
)
from .models import AuthResult, Identity, User, UserInfo, normalize_email
from .passwords import MAX_PASSWORD_BYTES, PasswordHasher
from .tokens import TokenService

logger = structlog.get_logger(__name__)

MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 8
PASSWORD_POLICY = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*[0-9]).+$")


def validate_password(password: str) -> None:
    """
    Raises:
        ValidationError: the password breaks the policy
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if not PASSWORD_POLICY.match(password):
        raise ValidationError(
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


def validate_name(value: str, label: str) -> str:
    """Trimmed name, at least two characters long."""
    name = (value or "").strip()
    if len(name) < MIN_NAME_LENGTH:
        raise ValidationError(f"{label} must be at least {MIN_NAME_LENGTH} characters")
    return name


def validate_email_address(email: str) -> str:
    """Check the format and return the normalized address."""
    normalized = normalize_email(email or "")
    try:
        validate_email(normalized, check_deliverability=False)
    except EmailNotValidError:
        raise ValidationError("Email address is not valid")
    return normalized


class AuthService:
    """Auth component: turns credentials into signed identity tokens."""

    def __init__(self, user_store: UserStore, token_service: TokenService, hasher: PasswordHasher):
        self.user_store = user_store
        self.token_service = token_service
        self.hasher = hasher
        # Unknown emails are verified against this hash
        self._dummy_hash = hasher.hash("Unused-Password-0")

    async def register(self, email: str, first_name: str, last_name: str, password: str) -> AuthResult:
        """
        Create an account and sign the new user in.

        Raises:
            ValidationError: malformed email, names or password
            DuplicateEmailError: an account with the normalized email exists
        """
        normalized_email = validate_email_address(email)
        first = validate_name(first_name, "First name")
        last = validate_name(last_name, "Last name")
        validate_password(password or "")

        # Not atomic with the insert; the unique index backs it up
        if await self.user_store.find_by_email(normalized_email) is not None:
            raise DuplicateEmailError()

        user = await self.user_store.insert(User(
            email=normalized_email,
            first_name=first,
            last_name=last,
            password_hash=self.hasher.hash(password),
        ))

        logger.info("User registered", user_id=user.id)
        return self._sign_in(user)

    async def login(self, email: str, password: str) -> AuthResult:
        """
        Raises:
            InvalidCredentialsError: unknown email or wrong password, indistinguishably
        """
        user = await self.user_store.find_by_email(normalize_email(email or ""))

        if user is None:
            self.hasher.verify(password or "", self._dummy_hash)
            logger.info("Login failed")
            raise InvalidCredentialsError()

        if not self.hasher.verify(password or "", user.password_hash):
            logger.info("Login failed")
            raise InvalidCredentialsError()

        logger.info("User logged in", user_id=user.id)
        return self._sign_in(user)

    async def refresh(self, identity: Identity) -> AuthResult:
        """
        Issue a fresh token for a still-valid identity.

        Raises:
            UserNotFoundError: the account behind the token is gone
        """
        user = await self.user_store.find_by_id(identity.user_id)
        if user is None:
            logger.warning("Refresh for missing user", user_id=identity.user_id)
            raise UserNotFoundError()

        logger.info("Token refreshed", user_id=user.id)
        return self._sign_in(user)

    def logout(self) -> None:
        """Tokens are stateless; the client-side cookie is all there is to clear."""
        logger.debug("User logged out")

    def _sign_in(self, user: User) -> AuthResult:
        token, expires_at = self.token_service.issue(user)
        return AuthResult(user=UserInfo.from_user(user), token=token, expires_at=expires_at)
