"""
Unit tests for registration, login and refresh.
"""

from unittest.mock import patch

import pytest

from bookshelf.auth_service import AuthService, validate_password
from bookshelf.exceptions import (
    ConflictError,
    DuplicateEmailError,
    InvalidCredentialsError,
    UserNotFoundError,
    ValidationError,
)


@pytest.fixture
def auth_service(user_store, token_service, hasher):
    return AuthService(user_store, token_service, hasher)


async def _register(auth_service, email="Reader@Example.com", password="Secret123"):
    return await auth_service.register(email, "Ada", "Reader", password)


class TestPasswordPolicy:
    """Test cases for the password rules."""

    @pytest.mark.parametrize("password", [
        "Short1",          # too short
        "alllowercase1",   # no uppercase
        "ALLUPPERCASE1",   # no lowercase
        "Password\u0661",  # non-ASCII digit
        "NoDigitsHere",    # no digit
        "",
    ])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(ValidationError):
            validate_password(password)

    def test_password_too_long_for_bcrypt_rejected(self):
        with pytest.raises(ValidationError):
            validate_password("Aa1" + "x" * 70)

    def test_acceptable_password(self):
        validate_password("Secret123")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("password", ["Short1", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere"])
    async def test_register_enforces_policy(self, auth_service, user_store, password):
        with pytest.raises(ValidationError):
            await _register(auth_service, password=password)
        assert user_store.users == {}


class TestRegister:
    """Test cases for AuthService.register."""

    @pytest.mark.asyncio
    async def test_register_returns_profile_and_token(self, auth_service, token_service, user_store):
        result = await _register(auth_service)

        assert result.user.email == "reader@example.com"
        assert result.user.first_name == "Ada"
        assert result.user.last_name == "Reader"
        assert result.user.id in user_store.users
        assert token_service.validate(result.token).user_id == result.user.id

    @pytest.mark.asyncio
    async def test_password_is_stored_hashed(self, auth_service, user_store, hasher):
        result = await _register(auth_service)
        stored = user_store.users[result.user.id]

        assert stored.password_hash != "Secret123"
        assert hasher.verify("Secret123", stored.password_hash)

    @pytest.mark.asyncio
    async def test_names_are_trimmed(self, auth_service):
        result = await auth_service.register("reader@example.com", "  Ada ", " Reader  ", "Secret123")
        assert result.user.first_name == "Ada"
        assert result.user.last_name == "Reader"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("first_name,last_name", [("A", "Reader"), ("Ada", "R"), ("  A  ", "Reader")])
    async def test_short_names_rejected(self, auth_service, first_name, last_name):
        with pytest.raises(ValidationError):
            await auth_service.register("reader@example.com", first_name, last_name, "Secret123")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email", ["not-an-email", "missing@", "@example.com", ""])
    async def test_invalid_email_rejected(self, auth_service, email):
        with pytest.raises(ValidationError):
            await auth_service.register(email, "Ada", "Reader", "Secret123")

    @pytest.mark.asyncio
    async def test_case_variant_email_is_duplicate(self, auth_service):
        await _register(auth_service, email="Foo@Bar.com")

        with pytest.raises(ConflictError):
            await _register(auth_service, email="  foo@bar.COM ")

    @pytest.mark.asyncio
    async def test_duplicate_email_error_kind(self, auth_service):
        await _register(auth_service)
        with pytest.raises(DuplicateEmailError) as exc_info:
            await _register(auth_service)
        assert exc_info.value.status_code == 400


class TestLogin:
    """Test cases for AuthService.login."""

    @pytest.mark.asyncio
    async def test_login_with_normalized_email(self, auth_service):
        registered = await _register(auth_service, email="Foo@Bar.com")

        result = await auth_service.login("foo@bar.com", "Secret123")

        assert result.user.id == registered.user.id
        assert result.token

    @pytest.mark.asyncio
    async def test_unknown_email_and_wrong_password_look_the_same(self, auth_service):
        await _register(auth_service)

        with pytest.raises(InvalidCredentialsError) as unknown:
            await auth_service.login("nobody@example.com", "Secret123")
        with pytest.raises(InvalidCredentialsError) as wrong:
            await auth_service.login("reader@example.com", "Wrong1234")

        assert type(unknown.value) is type(wrong.value)
        assert unknown.value.message == wrong.value.message
        assert unknown.value.status_code == wrong.value.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_email_still_runs_password_check(self, auth_service, hasher):
        with patch.object(hasher, "verify", wraps=hasher.verify) as verify:
            with pytest.raises(InvalidCredentialsError):
                await auth_service.login("nobody@example.com", "Secret123")
        verify.assert_called_once()


class TestRefresh:
    """Test cases for AuthService.refresh."""

    @pytest.mark.asyncio
    async def test_refresh_issues_new_token(self, auth_service, token_service):
        registered = await _register(auth_service)
        identity = token_service.validate(registered.token)

        result = await auth_service.refresh(identity)

        assert result.user.id == registered.user.id
        assert token_service.validate(result.token).token_id != identity.token_id

    @pytest.mark.asyncio
    async def test_refresh_for_deleted_user_fails(self, auth_service, token_service, user_store):
        registered = await _register(auth_service)
        identity = token_service.validate(registered.token)
        user_store.users.clear()

        with pytest.raises(UserNotFoundError):
            await auth_service.refresh(identity)

    def test_logout_always_succeeds(self, auth_service):
        auth_service.logout()
        auth_service.logout()
