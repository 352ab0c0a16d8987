# shopapi/auth.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import bcrypt
import jwt

from .errors import Forbidden, InvalidCredentials, Unauthorized, ValidationError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash or an over-long password
        return False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AdminAuth:
    """Issues and checks the single admin's bearer token.

    Tokens carry only ``{"admin": true}`` plus ``iat``/``exp``; expiry is the
    only way a token stops working.
    """

    def __init__(self, admins, secret: str, expires_hours: int = 24,
                 clock: Callable[[], datetime] = _utcnow):
        self.admins = admins
        self.secret = secret
        self.expires = timedelta(hours=expires_hours)
        self.clock = clock
        self._dummy_hash: Optional[str] = None

    def login(self, email: str, password: str) -> str:
        if not email or not password:
            raise ValidationError("Email and password are required")

        admin = self.admins.find_by_email(email)
        if admin is None:
            # same bcrypt cost whether or not the email exists
            verify_password(password, self._placeholder_hash())
            logger.warning("Admin login failed for unknown email %s", email)
            raise InvalidCredentials()
        if not verify_password(password, admin.get("password_hash", "")):
            logger.warning("Admin login failed for %s: wrong password", email)
            raise InvalidCredentials()

        logger.info("Admin %s logged in", admin["email"])
        return self.issue_token()

    def issue_token(self) -> str:
        now = self.clock()
        payload = {"admin": True, "iat": now, "exp": now + self.expires}
        return jwt.encode(payload, self.secret, algorithm=JWT_ALGORITHM)

    def verify(self, token: Optional[str]) -> Dict[str, Any]:
        if not token:
            raise Unauthorized()
        try:
            payload = jwt.decode(token, self.secret, algorithms=[JWT_ALGORITHM])
        except jwt.PyJWTError as exc:
            logger.info("Rejected admin token: %s", exc)
            raise Forbidden() from exc
        if payload.get("admin") is not True:
            raise Forbidden()
        return payload

    def seed_admin(self, email: str, password: str) -> None:
        self.admins.upsert(email, hash_password(password))
        logger.info("Admin account %s is ready", email.strip().lower())

    def _placeholder_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = hash_password("placeholder-password")
        return self._dummy_hash
