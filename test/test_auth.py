"""
Tests for password hashing and token helpers in hms.auth
"""

from datetime import timedelta

import pytest
from jose import jwt

from hms.auth import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    hash_password,
    user_id_from_claims,
    verify_password,
)
from hms.constants.auth import ALGORITHM, REFRESH_SECRET_KEY, SECRET_KEY
from hms.exceptions import InvalidRefreshTokenError, InvalidTokenError, TokenExpiredError

CLAIMS = {"sub": "12", "email": "doc@example.com", "role": "DOCTOR", "tenant_id": 3}


class TestPasswordHashing:
    def test_hash_is_salted(self):
        first, second = hash_password("Secret123"), hash_password("Secret123")
        assert first != second
        assert first.startswith("$2b$")

    def test_verify(self):
        hashed = hash_password("Secret123")
        assert verify_password("Secret123", hashed)
        assert not verify_password("secret123", hashed)


class TestAccessTokens:
    """Test access-token signing and verification"""

    def test_round_trip_claims(self):
        payload = decode_access_token(create_access_token(CLAIMS))
        for key, value in CLAIMS.items():
            assert payload[key] == value
        assert payload["type"] == "access"
        assert payload["exp"] - payload["iat"] == 15 * 60

    def test_missing_sub(self):
        with pytest.raises(ValueError):
            create_access_token({"email": "doc@example.com"})

    def test_expired(self):
        token = create_access_token(CLAIMS, timedelta(seconds=-1))
        with pytest.raises(TokenExpiredError):
            decode_access_token(token)

    def test_refresh_token_is_not_an_access_token(self):
        """Signed with the other secret, so the signature check fails first"""
        with pytest.raises(InvalidTokenError):
            decode_access_token(create_refresh_token(CLAIMS))

    def test_wrong_type_with_right_secret(self):
        token = jwt.encode({**CLAIMS, "type": "refresh"}, SECRET_KEY, algorithm=ALGORITHM)
        with pytest.raises(InvalidTokenError):
            decode_access_token(token)


class TestRefreshTokens:
    """Test refresh-token signing and verification"""

    def test_carries_unique_jti(self):
        first = decode_refresh_token(create_refresh_token(CLAIMS))
        second = decode_refresh_token(create_refresh_token(CLAIMS))
        assert first["jti"] != second["jti"]
        assert first["type"] == "refresh"
        assert first["exp"] - first["iat"] == 7 * 24 * 3600

    def test_secrets_are_independent(self):
        assert SECRET_KEY != REFRESH_SECRET_KEY
        with pytest.raises(InvalidRefreshTokenError):
            decode_refresh_token(create_access_token(CLAIMS))

    def test_missing_jti(self):
        token = jwt.encode({**CLAIMS, "type": "refresh"}, REFRESH_SECRET_KEY, algorithm=ALGORITHM)
        with pytest.raises(InvalidRefreshTokenError):
            decode_refresh_token(token)

    def test_expired(self):
        with pytest.raises(InvalidRefreshTokenError):
            decode_refresh_token(create_refresh_token(CLAIMS, timedelta(seconds=-1)))


class TestUserIdFromClaims:
    def test_parses_sub(self):
        assert user_id_from_claims({"sub": "42"}, InvalidTokenError) == 42

    @pytest.mark.parametrize("payload", [{}, {"sub": "abc"}, {"sub": None}])
    def test_bad_sub(self, payload):
        with pytest.raises(InvalidTokenError):
            user_id_from_claims(payload, InvalidTokenError)
