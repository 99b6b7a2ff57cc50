"""Signed local "remember me" artifact.

Used only when no backend is configured: the demo sign-in stores the
user's profile locally so the next start resumes the session. The payload
is JSON signed with ``itsdangerous``; a tampered or foreign artifact reads
as absent.
"""

import logging

from itsdangerous import BadSignature, URLSafeSerializer

from accountable.backend._mapping import map_row, to_row
from accountable.backend.models import Profile
from accountable.errors import ConfigurationError
from accountable.storage import Storage

logger = logging.getLogger("accountable.auth")

STORAGE_KEY = "mock_user_session"
_SALT = "accountable.remember-me"


class LocalSessionStore:
    """Read, write and clear the signed remember-me artifact."""

    __slots__ = ("_serializer", "_storage")

    def __init__(self, storage: Storage, secret_key: str) -> None:
        if not secret_key:
            msg = "LocalSessionStore requires a non-empty secret_key (AppConfig.secret_key)."
            raise ConfigurationError(msg)
        self._storage = storage
        self._serializer = URLSafeSerializer(secret_key, salt=_SALT)

    def remember(self, profile: Profile) -> None:
        self._storage.set_item(STORAGE_KEY, self._serializer.dumps(to_row(profile)))

    def load(self) -> Profile | None:
        """Return the remembered profile, or ``None`` if absent or invalid."""
        token = self._storage.get_item(STORAGE_KEY)
        if not isinstance(token, str):
            return None
        try:
            row = self._serializer.loads(token)
        except BadSignature:
            logger.warning("Discarding remember-me artifact with a bad signature")
            self.clear()
            return None
        try:
            return map_row(Profile, row)
        except (TypeError, ValueError):
            logger.warning("Discarding malformed remember-me artifact")
            self.clear()
            return None

    def clear(self) -> None:
        self._storage.remove_item(STORAGE_KEY)
