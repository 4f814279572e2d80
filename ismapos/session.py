"""Authenticated session and its on-disk persistence."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

TOKEN_KEY = "authToken"
USER_KEY = "currentUser"


@dataclass
class Session:
    """Credentials for one signed-in user.

    Created at login and terminated at logout or when the backend answers
    401. A terminated session carries no token, so requests made with it go
    out unauthenticated.
    """

    token: Optional[str] = None
    user: dict[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return bool(self.token)

    @property
    def user_id(self) -> Optional[str]:
        user_id = self.user.get("id")
        return None if user_id is None else str(user_id)

    @property
    def role(self) -> Optional[str]:
        return self.user.get("role")

    @property
    def permissions(self) -> Optional[list[str]]:
        perms = self.user.get("permissions")
        return list(perms) if isinstance(perms, list) else None

    def terminate(self) -> None:
        self.token = None
        self.user = {}


class SessionStore:
    """JSON file holding ``authToken`` and ``currentUser``."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def load(self) -> Session:
        if not self.path.exists():
            return Session()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Stored session is corrupted, clearing it")
            self.clear()
            return Session()
        token = data.get(TOKEN_KEY) if isinstance(data, dict) else None
        user = data.get(USER_KEY) if isinstance(data, dict) else None
        if not token or not isinstance(user, dict):
            self.clear()
            return Session()
        return Session(token=token, user=user)

    def save(self, session: Session) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {TOKEN_KEY: session.token, USER_KEY: session.user}
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
