"""
Auth service — password hashing, JWT issuance and bearer-token resolution.

Tokens carry ``{"sub": <user id>, "email": <email>, "exp": <expiry>}`` and
are signed with ``settings.JWT_SECRET``.  Nothing outside this module reads
password hashes or token internals; the rest of the app only sees the
resolved ``User``.
"""
import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import ConflictError, UnauthorizedError
from app.models import User
from app.schemas import LoginRequest, RegisterRequest
from app.services import user_service

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: str, email: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)
    claims = {"sub": user_id, "email": email, "exp": expire}
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Return the verified claims of *token*, or None if it is invalid or expired."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


async def register(db: AsyncSession, data: RegisterRequest) -> User:
    """Create a user account.  Raises ConflictError if the email is taken."""
    if await user_service.get_user_by_email(db, data.email) is not None:
        raise ConflictError("User with this email already exists")

    user = await user_service.create_user(
        db,
        email=data.email,
        username=data.username,
        password_hash=hash_password(data.password),
    )
    logger.info("Registered user id=%s", user.id)
    return user


async def login(db: AsyncSession, data: LoginRequest) -> str:
    """
    Check the credentials and return a signed access token.

    Unknown email and wrong password produce the same error so the
    response does not reveal which accounts exist.
    """
    user = await user_service.get_user_by_email(db, data.email)
    if user is None or not verify_password(data.password, user.password_hash):
        logger.info("Failed login for email=%s", data.email)
        raise UnauthorizedError("Invalid credentials")
    return create_access_token(user.id, user.email)


async def authenticate(db: AsyncSession, token: str) -> User:
    """Resolve a bearer token to its User, or raise UnauthorizedError."""
    claims = decode_access_token(token)
    if claims is None or claims.get("sub") is None:
        raise UnauthorizedError()

    user = await user_service.get_user(db, claims["sub"])
    if user is None:
        raise UnauthorizedError("User not found")
    return user
