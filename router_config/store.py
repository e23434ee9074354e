from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)


class JsonStore:
    """Key-value store kept in a single JSON file.

    ``set`` replaces the file atomically but does not force it to stable
    storage; callers that need durability call ``flush_to_disk``.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error("Failed to read store %s: %s", self.path, exc)
            return {}
        return payload if isinstance(payload, dict) else {}

    def get(self, key: str) -> Any:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            payload = self._read()
            payload[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile("w", delete=False, dir=self.path.parent, encoding="utf-8") as handle:
                json.dump(payload, handle)
                temp_name = handle.name
            Path(temp_name).replace(self.path)

    def flush_to_disk(self) -> None:
        with self._lock:
            if not self.path.exists():
                return
            fd = os.open(self.path, os.O_RDONLY)
            try:
                os.fsync(fd)
            finally:
                os.close(fd)
