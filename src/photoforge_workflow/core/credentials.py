from __future__ import annotations

import json
from pathlib import Path

from photoforge_workflow.core.settings import config_dir
from photoforge_workflow.util.errors import AuthError

ACCESS_KEY_STORAGE = "@photoforge_access_key"


def _credentials_path() -> Path:
    return config_dir() / "credentials.json"


class AccessCredentialStore:
    """Holds the bearer access key. Injected wherever an authenticated call is made."""

    def get(self) -> str | None:
        raise NotImplementedError

    def set(self, access_key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def require(self) -> str:
        key = self.get()
        if not key:
            raise AuthError("Please sign in with your access key first.")
        return key


class MemoryCredentialStore(AccessCredentialStore):
    def __init__(self, access_key: str | None = None) -> None:
        self._key = access_key

    def get(self) -> str | None:
        return self._key

    def set(self, access_key: str) -> None:
        self._key = access_key

    def clear(self) -> None:
        self._key = None


class FileCredentialStore(AccessCredentialStore):
    """Stores the key under a well-known name in a small JSON file in the user config dir.

    The file is re-read on every get() so a key cleared elsewhere takes effect
    on the next authenticated request.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or _credentials_path()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def get(self) -> str | None:
        value = self._read().get(ACCESS_KEY_STORAGE)
        return str(value) if value else None

    def set(self, access_key: str) -> None:
        data = self._read()
        data[ACCESS_KEY_STORAGE] = access_key
        self._write(data)

    def clear(self) -> None:
        data = self._read()
        if data.pop(ACCESS_KEY_STORAGE, None) is not None:
            self._write(data)
