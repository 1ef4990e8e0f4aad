"""
Signed identity tokens.

Tokens are HS256 JWTs keyed with the UTF-8 bytes of the configured secret.
Nothing is stored server-side: the issuer and the validating middleware
share only the secret.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Tuple

import jwt
import structlog

from utilities.config import AppConfig

from .exceptions import ConfigurationError, InvalidTokenError, InvalidUserError
from .models import Identity, User, utcnow

logger = structlog.get_logger(__name__)

ALGORITHM = "HS256"
MIN_KEY_LENGTH = 32


class TokenService:
    """Issues and validates identity tokens."""

    def __init__(self, config: AppConfig, clock: Callable[[], datetime] = utcnow):
        self.key = config.jwt_key
        self.issuer = config.jwt_issuer
        self.audience = config.jwt_audience
        self.expires_in_minutes = config.jwt_expires_in_minutes
        self.clock = clock

    def check_configuration(self) -> None:
        """
        Raises:
            ConfigurationError: secret, issuer, audience or lifetime unusable
        """
        if not self.key or not self.issuer or not self.audience:
            raise ConfigurationError("JWT configuration is incomplete")
        if len(self.key) < MIN_KEY_LENGTH:
            raise ConfigurationError(f"JWT key must be at least {MIN_KEY_LENGTH} characters")
        if self.expires_in_minutes is None or self.expires_in_minutes <= 0:
            raise ConfigurationError("JWT expiry must be a positive number of minutes")

    @property
    def lifetime(self) -> timedelta:
        return timedelta(minutes=self.expires_in_minutes)

    def issue(self, user: User) -> Tuple[str, datetime]:
        """
        Issue a token for a stored user.

        Returns:
            The encoded token and its absolute expiry

        Raises:
            ConfigurationError: token settings are missing or invalid
            InvalidUserError: the user has no assigned id
        """
        self.check_configuration()
        if not user.id:
            raise InvalidUserError()

        issued_at = self.clock()
        expires_at = issued_at + self.lifetime

        claims = {
            "sub": user.id,
            "email": user.email,
            "jti": str(uuid.uuid4()),
            "firstName": user.first_name,
            "lastName": user.last_name,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "iss": self.issuer,
            "aud": self.audience,
        }
        token = jwt.encode(claims, self.key.encode("utf-8"), algorithm=ALGORITHM)

        logger.debug("Token issued", user_id=user.id, expires_at=expires_at.isoformat())
        # The expiry in the token has whole-second precision; report that one
        return token, datetime.fromtimestamp(claims["exp"], tz=timezone.utc)

    def validate(self, token: str) -> Identity:
        """
        Verify signature, issuer, audience and expiry.

        A token is rejected from its expiry second onwards; there is no
        clock-skew allowance.

        Raises:
            ConfigurationError: token settings are missing or invalid
            InvalidTokenError: the token is unusable for any reason
        """
        self.check_configuration()
        if not token:
            raise InvalidTokenError("Authentication required")

        try:
            payload = jwt.decode(
                token,
                self.key.encode("utf-8"),
                algorithms=[ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                options={
                    "require": ["sub", "exp", "iss", "aud", "jti"],
                    # Expiry is checked below against our own clock
                    "verify_exp": False,
                },
            )
        except jwt.InvalidTokenError as e:
            logger.info("Token rejected", reason=str(e))
            raise InvalidTokenError()

        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        if self.clock() >= expires_at:
            logger.info("Token rejected", reason="expired")
            raise InvalidTokenError("Token has expired")

        return Identity(
            user_id=payload["sub"],
            email=payload.get("email", ""),
            token_id=payload["jti"],
            first_name=payload.get("firstName", ""),
            last_name=payload.get("lastName", ""),
            expires_at=expires_at,
        )
