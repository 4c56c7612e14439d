"""Session store - persisted bearer credential and cached identity.

Lifecycle: login saves a session, logout clears it, and the gateway clears it
when the backend rejects the token (HTTP 401). Corrupt local state is treated
as absent and never raised.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from ocm.schemas.auth import Identity, Session

logger = logging.getLogger(__name__)

SESSION_KEY = "ocm.session"
IDENTITY_KEY = "ocm.identity"
CONFIG_KEY = "ocm.config"


class KeyValueStore(Protocol):
    """String key-value persistence (the local-storage equivalent)."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process store (tests, one-shot scripts)."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """
    Store persisted as one JSON object on disk.

    An unreadable or malformed file reads as empty and is overwritten on the
    next write. The file is written atomically with owner-only permissions
    because it holds bearer tokens.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError:
            logger.warning("State file unreadable, treating as empty")
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("State file malformed, treating as empty")
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)}

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".ocm-state-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def delete(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


class SessionStore:
    """save/load/clear of the current Session, plus the last resolved Identity."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def save(self, session: Session) -> None:
        self.store.set(SESSION_KEY, session.model_dump_json())

    def load(self) -> Session | None:
        """Return the persisted session, or None when missing or malformed."""
        raw = self.store.get(SESSION_KEY)
        if not raw:
            return None
        try:
            return Session.model_validate_json(raw)
        except ValidationError:
            logger.info("Discarding malformed persisted session")
            return None

    def clear(self) -> None:
        """Destroy the session and everything derived from it."""
        self.store.delete(SESSION_KEY)
        self.store.delete(IDENTITY_KEY)

    def save_identity(self, identity: Identity) -> None:
        self.store.set(IDENTITY_KEY, identity.model_dump_json())

    def load_identity(self) -> Identity | None:
        raw = self.store.get(IDENTITY_KEY)
        if not raw:
            return None
        try:
            return Identity.model_validate_json(raw)
        except ValidationError:
            logger.info("Discarding malformed cached identity")
            return None
