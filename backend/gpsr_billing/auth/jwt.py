"""JWT access token creation and verification.

Tokens are issued by the identity provider; this service only verifies them.
:func:`create_access_token` mints compatible tokens for scripts and tests.
"""

from datetime import datetime, timedelta, timezone

from jose import jwt

from gpsr_billing.config import settings


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create an access token in the identity provider's format.

    Args:
        data: Payload data. Must include ``sub`` (user UUID as string).
        expires_delta: Custom expiration duration. Defaults to
            ``settings.jwt_access_token_expire_minutes`` minutes.

    Returns:
        Encoded JWT string.
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes))
    to_encode.update(
        {"exp": expire, "iat": now, "aud": settings.jwt_audience, "role": "authenticated"}
    )
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token, including its audience.

    Raises:
        jose.JWTError: If the token is invalid, expired, or malformed.
    """
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
    )
