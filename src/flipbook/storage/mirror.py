"""Size-constrained synchronous string store (the mirror tier).

Each key is one UTF-8 text file in ``directory``. The total size of all
entries is capped at ``quota_bytes``, like a browser's localStorage.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Optional

_SAFE_KEY = re.compile(r"^[A-Za-z0-9._-]{1,100}$")


class MirrorQuotaExceededError(OSError):
    """The write would push the mirror past its quota."""


class MirrorStore:
    def __init__(self, directory: Path, quota_bytes: int = 5 * 1024 * 1024) -> None:
        self._dir = directory
        self._quota = quota_bytes

    @property
    def quota_bytes(self) -> int:
        return self._quota

    def _path(self, key: str) -> Path:
        if _SAFE_KEY.match(key) and not key.startswith("."):
            name = key
        else:
            name = hashlib.sha256(key.encode()).hexdigest()[:32]
        return self._dir / f"{name}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, text: str) -> None:
        path = self._path(key)
        data = text.encode("utf-8")
        existing = path.stat().st_size if path.exists() else 0
        total = self.used_bytes() - existing + len(data)
        if total > self._quota:
            raise MirrorQuotaExceededError(
                f"Mirror quota exceeded: {total} > {self._quota} bytes"
            )
        self._dir.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(data)
        tmp.replace(path)

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def used_bytes(self) -> int:
        if not self._dir.exists():
            return 0
        return sum(p.stat().st_size for p in self._dir.glob("*.json"))
