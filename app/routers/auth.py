from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import Conflict, Unauthorized
from ..logging_config import get_logger
from ..models import User
from ..schemas.task import Message
from ..schemas.user import AuthResponse, User as UserSchema, UserCreate, UserEnvelope, UserLogin
from ..security import (
    SessionClaim,
    create_access_token,
    get_current_claim,
    get_password_hash,
    verify_password,
)

router = APIRouter()
logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email or password."


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """Return the user for valid credentials, else None."""
    user = db.query(User).filter(User.email == email).first()
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(user=UserSchema.model_validate(user), token=create_access_token(user))


def _duplicate_email() -> Conflict:
    return Conflict("Email already registered.", field="email", code="duplicate_email")


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, db: Session = Depends(get_db)):
    """Create a new user account and sign it in."""
    if db.query(User).filter(User.email == payload.email).first():
        logger.warning("Registration rejected: duplicate email")
        raise _duplicate_email()

    db_user = User(
        email=payload.email,
        hashed_password=get_password_hash(payload.password),
        name=payload.name,
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same email.
        db.rollback()
        logger.warning("Registration rejected: duplicate email (unique index)")
        raise _duplicate_email()
    db.refresh(db_user)

    logger.info("User registered id=%s", db_user.id)
    return _auth_response(db_user)


@router.post("/login", response_model=AuthResponse)
def login(payload: UserLogin, db: Session = Depends(get_db)):
    """Sign in and get a JWT token."""
    db_user = authenticate_user(db, payload.email, payload.password)
    if not db_user:
        logger.info("Failed login attempt")
        raise Unauthorized(INVALID_CREDENTIALS, code="invalid_credentials")
    return _auth_response(db_user)


@router.post("/logout", response_model=Message)
def logout():
    """Tokens are stateless; the client discards its token to log out."""
    return Message(message="Logged out. (Client should clear token.)")


@router.get("/me", response_model=UserEnvelope)
def read_current_user(
    claim: SessionClaim = Depends(get_current_claim),
    db: Session = Depends(get_db),
):
    """Current user's profile."""
    user = db.get(User, claim.user_id)
    if user is None:
        raise Unauthorized("User not found.", code="invalid_token")
    return UserEnvelope(user=UserSchema.model_validate(user))
