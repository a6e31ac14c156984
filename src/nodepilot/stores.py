"""
Credential and connection-history collaborators.

The controller only depends on the two protocols; secrets are never persisted
by the control plane itself.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from loguru import logger


class CredentialStore(Protocol):
    def load_credentials(self) -> tuple[str, str] | None: ...

    def save_credentials(self, user: str, password: str) -> None: ...

    def clear_credentials(self) -> None: ...


class HistoryStore(Protocol):
    def record_connection(self, address: str) -> None: ...

    def list_history(self) -> list[str]: ...

    def clear_history(self) -> None: ...


class MemoryCredentialStore:
    """Process-local credential store."""

    def __init__(self, user: str | None = None, password: str | None = None) -> None:
        self._credentials: tuple[str, str] | None = None
        if user is not None and password is not None:
            self._credentials = (user, password)

    def load_credentials(self) -> tuple[str, str] | None:
        return self._credentials

    def save_credentials(self, user: str, password: str) -> None:
        self._credentials = (user, password)

    def clear_credentials(self) -> None:
        self._credentials = None


class MemoryHistoryStore:
    def __init__(self) -> None:
        self._history: list[str] = []

    def record_connection(self, address: str) -> None:
        if address and address not in self._history:
            self._history.append(address)

    def list_history(self) -> list[str]:
        return list(self._history)

    def clear_history(self) -> None:
        self._history = []


class JsonHistoryStore:
    """Connection history kept as a JSON list in a file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def list_history(self) -> list[str]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable history file {self.path}: {e}")
            return []
        if not isinstance(data, list):
            return []
        return [str(item) for item in data]

    def record_connection(self, address: str) -> None:
        history = self.list_history()
        if not address or address in history:
            return
        history.append(address)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(history, indent=2))

    def clear_history(self) -> None:
        if self.path.exists():
            self.path.unlink()
