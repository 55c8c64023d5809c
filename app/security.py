"""Password hashing, token issuing and claim verification."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Request
from jose import JWTError, jwt

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, SECRET_KEY
from .errors import Unauthorized
from .models import User, UserRole

ALGORITHM = "HS256"


@dataclass(frozen=True)
class SessionClaim:
    """Verified identity of the requester, passed explicitly into task operations."""
    user_id: str
    email: str
    name: Optional[str]
    role: UserRole
    expires_at: datetime


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    password_bytes = plain_password.encode('utf-8')[:72]
    hashed_bytes = hashed_password.encode('utf-8') if isinstance(hashed_password, str) else hashed_password
    try:
        return bcrypt.checkpw(password_bytes, hashed_bytes)
    except ValueError:
        # Malformed stored hash
        return False


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt directly."""
    password_bytes = password.encode('utf-8')[:72]  # Truncate to 72 bytes (bcrypt limit)
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT carrying the user's identity and role claims."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    role = user.role.value if isinstance(user.role, UserRole) else user.role
    to_encode = {
        "sub": str(user.id),
        "email": user.email,
        "name": user.name,
        "role": role,
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> SessionClaim:
    """Verify a token and return its claim.

    Raises Unauthorized if the signature is invalid, the token is malformed,
    a required claim is missing or the token has expired.
    """
    try:
        payload = jwt.decode(
            token,
            SECRET_KEY,
            algorithms=[ALGORITHM],
            options={"require_exp": True, "require_sub": True},
        )
    except JWTError as exc:
        raise Unauthorized("Invalid/expired token.", code="invalid_token") from exc

    try:
        return SessionClaim(
            user_id=str(payload["sub"]),
            email=payload["email"],
            name=payload.get("name"),
            role=UserRole(payload.get("role", UserRole.USER.value)),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
    except (KeyError, ValueError, TypeError) as exc:
        raise Unauthorized("Invalid/expired token.", code="invalid_token") from exc


def _get_token_from_request(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


def get_current_claim(request: Request) -> SessionClaim:
    """Dependency resolving the Bearer token into a SessionClaim."""
    token = _get_token_from_request(request)
    if not token:
        raise Unauthorized("Missing Authorization header.", code="missing_token")
    return decode_token(token)
