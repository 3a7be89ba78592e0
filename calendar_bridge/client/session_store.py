# calendar_bridge/client/session_store.py
import json
import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_SESSION_PATH = Path.home() / ".calendar_bridge" / "session.json"


class SessionStore:
    """Keeps the signed-in email between runs, the way the web client keeps it in localStorage."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or os.getenv("CALENDAR_BRIDGE_SESSION", DEFAULT_SESSION_PATH))

    def load_email(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return None
        return data.get("userEmail") if isinstance(data, dict) else None

    def save_email(self, email: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"userEmail": email}), encoding="utf-8")
        logger.debug(f"Session saved for {email}")

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
