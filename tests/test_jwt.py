import time

import jwt
import pytest

from backend.app.core.security import create_access_token, decode_access_token
from backend.app.core.settings import get_settings


def test_token_subject_is_the_user_id_as_string():
    token = create_access_token(user_id="5d2c0b7e-guardian-user")
    payload = decode_access_token(token)
    assert payload["sub"] == "5d2c0b7e-guardian-user"
    assert isinstance(payload["exp"], int)


def test_token_lifetime_follows_settings():
    before = int(time.time())
    payload = decode_access_token(create_access_token(user_id="admin-1"))
    expected = before + get_settings().ACCESS_TOKEN_EXPIRE_MINUTES * 60
    assert expected - 2 <= payload["exp"] <= expected + 2


def test_expired_token_is_rejected():
    with pytest.raises(ValueError, match="Expired"):
        decode_access_token(create_access_token(user_id="admin-1", expires_minutes=-1))


def test_token_signed_with_another_secret_is_rejected():
    forged = jwt.encode({"sub": "platform-admin", "exp": 4102444800}, "a-different-signing-secret-for-forged-tokens", algorithm="HS256")
    with pytest.raises(ValueError, match="Invalid"):
        decode_access_token(forged)


def test_malformed_token_is_rejected():
    with pytest.raises(ValueError, match="Invalid"):
        decode_access_token("invalid.token.value")
