from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from passlib.context import CryptContext

from config import SECRET_KEY, SESSION_LIFETIME_DAYS, TOKEN_ALGORITHM
from errors import AuthError

# pbkdf2_sha256 ships with passlib itself, so no bcrypt backend is needed.
pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    """
    Hash a plain-text password using PBKDF2-SHA256.
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed: str) -> bool:
    """
    Verify a candidate password against a stored hash.
    """
    return pwd_context.verify(plain_password, hashed)


def create_session_token(
    user_id: int, email: str, lifetime: Optional[timedelta] = None
) -> str:
    """
    Sign a session token for the user, valid for SESSION_LIFETIME_DAYS
    unless another lifetime is given.
    """
    now = datetime.now(timezone.utc)
    expires = now + (lifetime or timedelta(days=SESSION_LIFETIME_DAYS))
    claims = {"sub": str(user_id), "email": email, "iat": now, "exp": expires}
    return jwt.encode(claims, SECRET_KEY, algorithm=TOKEN_ALGORITHM)


def decode_session_token(token: str) -> dict:
    """
    Return {"user_id", "email"} from a valid token, AuthError otherwise.
    """
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[TOKEN_ALGORITHM])
        return {"user_id": int(claims["sub"]), "email": claims.get("email")}
    except (jwt.PyJWTError, KeyError, ValueError) as exc:
        raise AuthError("Not authenticated") from exc
