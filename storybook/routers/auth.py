from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from storybook.database import get_db
from storybook.models import User, UserRole
from storybook.schemas.user import UserCreate, UserLogin, AuthResponse, UserResponse
from storybook.core.security import verify_password, get_password_hash, create_access_token
from storybook.services.notification_service import notify_welcome
import logging
import re

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

DISPOSABLE_DOMAINS = {
    "mailinator.com", "temp-mail.org", "guerrillamail.com", "10minutemail.com",
    "trashmail.com", "yopmail.com", "dispostable.com", "getnada.com",
    "sharklasers.com", "guerrillamailblock.com", "pokemail.net", "spam4.me",
}

# At least 8 chars with lower, upper, digit and one special character
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$")


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _auth_payload(user: User) -> AuthResponse:
    token = create_access_token(data={"sub": str(user.id)})
    return AuthResponse(**UserResponse.model_validate(user).model_dump(), token=token)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(user_data: UserCreate, db: Session = Depends(get_db)):
    """
    Create a new reader account and return it together with an access token.
    """
    email = user_data.email.lower()
    domain = email.split("@")[-1]
    if domain in DISPOSABLE_DOMAINS:
        raise _bad_request("Disposable email addresses are not allowed. Please use a real email.")

    if not PASSWORD_PATTERN.match(user_data.password):
        raise _bad_request(
            "Password must be at least 8 characters long and include uppercase, lowercase, number, and special character"
        )

    username = user_data.username.strip()
    if db.query(User).filter(User.email == email).first():
        raise _bad_request("Email already registered")
    if db.query(User).filter(User.username == username).first():
        raise _bad_request("Username already taken")

    new_user = User(
        username=username,
        email=email,
        password_hash=get_password_hash(user_data.password),
        role=UserRole.USER,
        points=0,
        level=1,
    )

    try:
        db.add(new_user)
        db.flush()
    except IntegrityError:
        db.rollback()
        raise _bad_request("Email or username already registered")

    notify_welcome(db, new_user)
    db.commit()
    db.refresh(new_user)
    logger.info("Registered user %s (%s)", new_user.id, new_user.username)

    return _auth_payload(new_user)


@router.post("/login", response_model=AuthResponse)
def login(user_data: UserLogin, db: Session = Depends(get_db)):
    """
    Authenticate with email or username plus password.
    """
    identifier = user_data.email.strip()
    user = (
        db.query(User)
        .filter(or_(User.email == identifier.lower(), User.username == identifier))
        .first()
    )

    if not user or not verify_password(user_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return _auth_payload(user)
