# shopsdk/admin.py
import logging

from .errors import ApiError

logger = logging.getLogger(__name__)

TOKEN_KEY = "adminToken"


class AdminSession:
    """Keeps the admin bearer token in durable storage and on the client."""

    def __init__(self, client, storage, key: str = TOKEN_KEY):
        self.client = client
        self.storage = storage
        self.key = key
        self.is_admin = False

    def check(self) -> bool:
        """Verify a previously saved token; a rejected token is discarded."""
        token = self.storage.get(self.key)
        if not token:
            self.is_admin = False
            return False
        self.client.token = token
        try:
            self.is_admin = self.client.verify()
        except ApiError as exc:
            logger.info("Saved admin token rejected: %s", exc.message)
            self.is_admin = False
        if not self.is_admin:
            self._forget()
        return self.is_admin

    def login(self, email: str, password: str) -> None:
        token = self.client.login(email, password)
        self.storage.set(self.key, token)
        self.is_admin = True

    def logout(self) -> None:
        self._forget()
        self.is_admin = False

    def _forget(self) -> None:
        self.storage.remove(self.key)
        self.client.token = None
