"""Unit tests for JWT token creation, decoding, and validation."""

from datetime import timedelta

import pytest
from jose import JWTError, jwt

from gpsr_billing.auth.jwt import create_access_token, decode_token
from gpsr_billing.config import settings


class TestCreateAccessToken:
    """Test access token creation."""

    def test_contains_sub_claim(self):
        payload = decode_token(create_access_token({"sub": "user-abc"}))
        assert payload["sub"] == "user-abc"

    def test_contains_audience_and_role(self):
        payload = decode_token(create_access_token({"sub": "user-123"}))
        assert payload["aud"] == settings.jwt_audience
        assert payload["role"] == "authenticated"

    def test_contains_iat_and_exp_claims(self):
        payload = decode_token(create_access_token({"sub": "user-123"}))
        assert "iat" in payload
        assert "exp" in payload


class TestDecodeToken:
    """Test token decoding and validation."""

    def test_decode_expired_token_raises(self):
        token = create_access_token({"sub": "user-123"}, expires_delta=timedelta(seconds=-1))
        with pytest.raises(JWTError):
            decode_token(token)

    def test_decode_wrong_audience_raises(self):
        token = jwt.encode(
            {"sub": "user-123", "aud": "someone-else"},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(JWTError):
            decode_token(token)

    def test_decode_wrong_secret_raises(self):
        token = jwt.encode(
            {"sub": "user-123", "aud": settings.jwt_audience},
            "not-the-secret",
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(JWTError):
            decode_token(token)

    def test_decode_invalid_token_raises(self):
        with pytest.raises(JWTError):
            decode_token("not.a.valid.token")
