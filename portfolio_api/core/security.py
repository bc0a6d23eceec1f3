"""
Password hashing (passlib/bcrypt) and JWT encoding (python-jose).

Signing parameters are passed in explicitly; callers take them from the
Settings the application was created with.
"""
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError
from passlib.context import CryptContext

from portfolio_api.core.exceptions import InvalidTokenError, TokenExpiredError


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Constant-time comparison of plain_password against a stored bcrypt hash."""
    return pwd_context.verify(plain_password, hashed_password)


@lru_cache(maxsize=1)
def dummy_password_hash() -> str:
    """Hash checked when there is no account, so every failed login pays for one bcrypt round."""
    return pwd_context.hash("portfolio-unknown-account")


def create_jwt_token(
    data: Dict[str, Any],
    expires_delta: timedelta,
    secret_key: str,
    algorithm: str = "HS256"
) -> str:
    """
    Sign a token carrying data plus ``iat`` and ``exp`` claims.

    Args:
        data: Claims to encode; not modified
        expires_delta: Lifetime from now (negative values yield an already expired token)
        secret_key: Signing secret
        algorithm: Signing algorithm

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(timezone.utc)
    claims = {**data, "iat": issued_at, "exp": issued_at + expires_delta}
    return jwt.encode(claims, secret_key, algorithm=algorithm)


def decode_jwt_token(token: str, secret_key: str, algorithm: str = "HS256") -> Dict[str, Any]:
    """
    Verify signature and expiry and return the claims.

    Raises:
        TokenExpiredError: exp is in the past
        InvalidTokenError: malformed token, bad signature or unexpected algorithm
    """
    try:
        return jwt.decode(token, secret_key, algorithms=[algorithm])
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise InvalidTokenError()
