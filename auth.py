from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from sqlalchemy.orm import Session
import bcrypt
import logging
import os
import secrets

from models import Settings, SubAdmin
from permissions import Actor, ActorKind, Permissions

logger = logging.getLogger(__name__)

# JWT Configuration
SECRET_KEY = os.getenv("SECRET_KEY", secrets.token_urlsafe(32))
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 480))

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

# The main admin account lives in the settings row, not the sub-admin table
ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "mandirjan")
ADMIN_DEFAULT_PASSWORD = os.getenv("ADMIN_DEFAULT_PASSWORD", "admin123")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash using bcrypt.

    Args:
        plain_password: The plain text password to verify
        hashed_password: The bcrypt hashed password to check against

    Returns:
        bool: True if password matches, False otherwise
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except (ValueError, TypeError) as e:
        logger.warning(f"Error verifying password: {e}")
        return False


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt with salt.

    Args:
        password: The plain text password to hash

    Returns:
        str: The bcrypt hashed password
    """
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """Create a JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def create_actor_token(actor: Actor) -> str:
    """Issue a token that identifies the actor. Permissions are reloaded on every request."""
    claims = {"sub": actor.username, "type": ActorKind(actor.kind).value}
    if actor.id is not None:
        claims["sid"] = actor.id
    return create_access_token(claims)


def verify_token(token: str) -> Optional[dict]:
    """Verify a JWT token and return its claims."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("sub") is None or payload.get("type") not in (ActorKind.ADMIN.value, ActorKind.SUBADMIN.value):
        return None
    return payload


def subadmin_actor(subadmin: SubAdmin) -> Actor:
    return Actor(
        kind=ActorKind.SUBADMIN,
        username=subadmin.username,
        id=subadmin.id,
        permissions=Permissions.from_subadmin(subadmin),
    )


def admin_actor() -> Actor:
    return Actor(kind=ActorKind.ADMIN, username=ADMIN_USERNAME)


def load_actor(db: Session, claims: dict) -> Optional[Actor]:
    """Rebuild the actor named by token claims from current database state."""
    if claims["type"] == ActorKind.ADMIN.value:
        if claims["sub"] != ADMIN_USERNAME:
            return None
        return admin_actor()

    subadmin = db.query(SubAdmin).filter(SubAdmin.id == claims.get("sid")).first()
    if not subadmin or subadmin.username != claims["sub"]:
        return None
    return subadmin_actor(subadmin)


def authenticate(db: Session, username: str, password: str) -> Optional[Actor]:
    """Check credentials against the main admin first, then the sub-admins."""
    if username == ADMIN_USERNAME:
        settings = db.query(Settings).first()
        if settings and verify_password(password, settings.admin_hashed_password):
            return admin_actor()

    subadmin = db.query(SubAdmin).filter(SubAdmin.username == username).first()
    if subadmin and verify_password(password, subadmin.hashed_password):
        return subadmin_actor(subadmin)

    return None
