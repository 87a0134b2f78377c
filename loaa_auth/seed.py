"""
Login credentials: bcrypt password hashing, the account store lookup, and env seeding.
The built-in "admin" account checks LOAA_ADMIN_PASSWORD instead of the database.
"""
import hmac
import logging
import os
from dataclasses import dataclass

import bcrypt
from sqlalchemy.orm import Session

from loaa_auth import config
from loaa_auth.models import ACCOUNT_ADMIN, ACCOUNT_USER, User

logger = logging.getLogger(__name__)

ADMIN_USERNAME = "admin"


def hash_password(password: str) -> str:
    # Bcrypt has a 72-byte limit
    raw = password.encode("utf-8")
    if len(raw) > 72:
        raw = raw[:72]
    return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    raw = plain.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(raw, hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


@dataclass(frozen=True)
class AuthenticatedAccount:
    subject: str
    account_type: str


def verify_credentials(db: Session, username: str, password: str) -> AuthenticatedAccount | None:
    """Return the account for valid credentials, else None."""
    if username == ADMIN_USERNAME:
        if not config.ADMIN_PASSWORD:
            logger.warning("Admin login attempted but LOAA_ADMIN_PASSWORD is not set")
            return None
        if hmac.compare_digest(password.encode("utf-8"), config.ADMIN_PASSWORD.encode("utf-8")):
            return AuthenticatedAccount(subject=ADMIN_USERNAME, account_type=ACCOUNT_ADMIN)
        return None

    user = db.query(User).filter(User.username == username).first()
    if user is None or not verify_password(password, user.password_hash):
        return None
    return AuthenticatedAccount(subject=user.subject, account_type=user.account_type or ACCOUNT_USER)


def seed_from_env(db: Session) -> None:
    """Create one login account from LOAA_SEED_USER / LOAA_SEED_PASSWORD if set."""
    seed_user = os.environ.get("LOAA_SEED_USER")
    seed_password = os.environ.get("LOAA_SEED_PASSWORD")
    if not (seed_user and seed_password):
        return
    if seed_user == ADMIN_USERNAME:
        logger.warning("LOAA_SEED_USER may not be %r; use LOAA_ADMIN_PASSWORD instead", ADMIN_USERNAME)
        return
    if db.query(User).filter(User.username == seed_user).first() is None:
        db.add(User(username=seed_user, password_hash=hash_password(seed_password)))
        db.commit()
        logger.info("Seeded user: %s", seed_user)
    else:
        logger.debug("User already exists: %s", seed_user)
