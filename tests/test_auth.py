"""Session authentication tests — JWT → Principal."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from discord_relay.auth.jwt import TokenError, create_access_token, verify_token
from discord_relay.auth.session import authenticate, bearer_token
from discord_relay.config import settings
from discord_relay.errors import AuthenticationError, InvalidClaims, InvalidCredential


def _raw_token(payload: dict, secret: str | None = None) -> str:
    payload = {"exp": datetime.now(timezone.utc) + timedelta(minutes=5), **payload}
    return jwt.encode(payload, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)


def test_valid_token_yields_principal(token):
    principal = authenticate(token)
    assert principal.id == "U1"
    assert principal.username == "user1"
    assert principal.display_name == "User One"
    assert principal.is_bot is False


def test_display_name_defaults_to_username():
    principal = authenticate(create_access_token("U7", "bob"))
    assert principal.display_name == "bob"


def test_principal_is_read_only(token):
    principal = authenticate(token)
    with pytest.raises(AttributeError):
        principal.username = "mallory"


@pytest.mark.parametrize("missing", [None, ""])
def test_missing_token_is_invalid_credential(missing):
    with pytest.raises(InvalidCredential):
        authenticate(missing)


def test_garbage_token_is_invalid_credential():
    with pytest.raises(InvalidCredential):
        authenticate("not.a.jwt")


def test_expired_token_is_invalid_credential():
    expired = create_access_token("U1", "user1", expires_minutes=-1)
    with pytest.raises(InvalidCredential) as exc:
        authenticate(expired)
    assert "expired" in exc.value.reason


def test_wrong_signature_is_invalid_credential():
    forged = _raw_token({"discord_id": "U1", "username": "user1"}, secret="someone-else")
    with pytest.raises(InvalidCredential):
        authenticate(forged)


@pytest.mark.parametrize("payload", [
    {"username": "user1"},
    {"discord_id": "U1"},
    {"discord_id": "", "username": "user1"},
])
def test_missing_identity_claims_are_invalid_claims(payload):
    with pytest.raises(InvalidClaims) as exc:
        authenticate(_raw_token(payload))
    assert isinstance(exc.value, AuthenticationError)
    assert not isinstance(exc.value, InvalidCredential)


def test_verify_token_raises_token_error():
    with pytest.raises(TokenError):
        verify_token("garbage")


def test_bearer_token_parsing():
    assert bearer_token("Bearer abc.def") == "abc.def"
    assert bearer_token("Bearer   ") is None
    assert bearer_token("Basic abc") is None
    assert bearer_token(None) is None


def test_token_without_expiry_is_rejected():
    forever = jwt.encode(
        {"discord_id": "U1", "username": "user1"},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(InvalidCredential):
        authenticate(forever)
