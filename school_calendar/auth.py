# school_calendar/auth.py
"""
Single shared-secret admin gate.

The admin flag lives in the signed session cookie together with the time it
was granted. It expires a fixed ``ADMIN_SESSION_TTL`` seconds after login,
however active the session has been since.
"""
import logging
import time

from fastapi import Request
from werkzeug.security import generate_password_hash, check_password_hash

from school_calendar import config
from school_calendar.errors import AuthorizationError

logger = logging.getLogger(__name__)

IS_ADMIN = "is_admin"
ADMIN_SINCE = "admin_since"


# Still one shared secret, only the stored form is hashed
_ADMIN_HASH = generate_password_hash(config.ADMIN_PASSWORD)


def check_password(password) -> bool:
    if not isinstance(password, str) or not password:
        return False
    return check_password_hash(_ADMIN_HASH, password)


def login(session: dict, password, now: float | None = None) -> bool:
    if not check_password(password):
        logger.warning("Rejected admin login attempt")
        return False
    session[IS_ADMIN] = True
    session[ADMIN_SINCE] = time.time() if now is None else now
    logger.info("Admin session started")
    return True


def logout(session: dict) -> None:
    session.pop(IS_ADMIN, None)
    session.pop(ADMIN_SINCE, None)


def is_admin(session: dict, now: float | None = None) -> bool:
    if not session.get(IS_ADMIN):
        return False
    since = session.get(ADMIN_SINCE)
    now = time.time() if now is None else now
    if not isinstance(since, (int, float)) or now - since >= config.ADMIN_SESSION_TTL:
        logger.info("Admin session expired")
        logout(session)
        return False
    return True


async def require_admin(request: Request) -> None:
    """FastAPI dependency for every mutating admin route."""
    if not is_admin(request.session):
        raise AuthorizationError("Admin access required")
