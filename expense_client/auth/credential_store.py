"""
Durable key-value storage for the session credential.

Two named slots live in one JSON document so they are always written and
cleared together:
- authToken: the raw bearer token
- user: the serialized SessionUser
"""

from __future__ import annotations

import json
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from ..models.user import SessionUser
from ..utils.logger import get_logger

logger = get_logger(__name__)

TOKEN_SLOT = "authToken"
USER_SLOT = "user"


def _atomic_write(path: Path, payload: Dict) -> None:
    """Atomically write JSON to the target path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w", dir=str(path.parent), delete=False, encoding="utf-8"
    ) as tf:
        json.dump(payload, tf, indent=2, ensure_ascii=False)
        temp_path = Path(tf.name)
    try:
        shutil.move(str(temp_path), str(path))
    except OSError:
        if temp_path.exists():
            temp_path.unlink()
        raise


class CredentialStore:
    """JSON-file backed credential slots. Pure data access, no policy."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Credential store unreadable, treating as empty", path=str(self.path), error=str(e))
            return {}
        return raw if isinstance(raw, dict) else {}

    def read_token(self) -> Optional[str]:
        with self._lock:
            token = self._read().get(TOKEN_SLOT)
        return token if isinstance(token, str) and token else None

    def read_user(self) -> Optional[SessionUser]:
        with self._lock:
            data = self._read().get(USER_SLOT)
        if not isinstance(data, dict):
            return None
        try:
            return SessionUser.model_validate(data)
        except PydanticValidationError as e:
            logger.warning("Stored user record is invalid", error=str(e))
            return None

    def load(self) -> Tuple[Optional[str], Optional[SessionUser]]:
        return self.read_token(), self.read_user()

    def save(self, token: str, user: SessionUser) -> None:
        payload = {
            TOKEN_SLOT: token,
            USER_SLOT: user.model_dump(mode="json", by_alias=True),
        }
        with self._lock:
            _atomic_write(self.path, payload)

    def clear(self) -> None:
        with self._lock:
            if self.path.exists():
                self.path.unlink()

    def is_empty(self) -> bool:
        with self._lock:
            data = self._read()
        return not data.get(TOKEN_SLOT) and not data.get(USER_SLOT)
