"""
Client-side authentication state.

A Session holds the bearer token and the user it was issued for. It is loaded
from and saved to a JSON file so the login survives between CLI runs. A stored
token counts as logged in without asking the server; an expired one is only
noticed when a protected call answers 401, and that clears the session.
"""
import json
import logging
import os
from pathlib import Path
from typing import Optional

from app import config

logger = logging.getLogger(__name__)


class Session:

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else config.CLIENT_SESSION_FILE
        self.token: Optional[str] = None
        self.user: Optional[dict] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def load(self) -> "Session":
        """Reads the stored session, a missing or broken file means logged out"""
        if not self.path.exists():
            return self
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return self

        if not isinstance(data, dict):
            logger.warning("Ignoring malformed session file %s", self.path)
            return self

        self.token = data.get("token")
        self.user = data.get("user")
        return self

    def save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # owner-only from creation on, also tightens a file left with wider permissions
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        if hasattr(os, "fchmod"):
            os.fchmod(fd, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump({"token": self.token, "user": self.user}, f)

    def start(self, token: str, user: dict):
        """Called after login/register"""
        self.token = token
        self.user = user
        self.save()

    def clear(self):
        """Called on logout and when the server rejects the token"""
        self.token = None
        self.user = None
        if self.path.exists():
            self.path.unlink()
