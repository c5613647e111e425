# app/core/security.py
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError
from passlib.context import CryptContext

from app.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72


def _truncate(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    # Testing: salted sha256 in a bcrypt-shaped string, fast and still verifiable.
    if settings.ENVIRONMENT == "testing":
        salt = secrets.token_hex(8)
        digest = hashlib.sha256(salt.encode("utf-8") + password.encode("utf-8")).hexdigest()
        return f"$2b${salt}${digest}"

    return pwd_context.hash(_truncate(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if settings.ENVIRONMENT == "testing" and hashed_password.startswith("$2b$"):
        parts = hashed_password.split("$")
        if len(parts) != 4:
            return False
        salt, digest = parts[2], parts[3]
        expected = hashlib.sha256(salt.encode("utf-8") + plain_password.encode("utf-8")).hexdigest()
        return hmac.compare_digest(digest, expected)

    return pwd_context.verify(_truncate(plain_password), hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
