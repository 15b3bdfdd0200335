"""
JSON-file document store: one pretty-printed file per document.
Writes go to a temp file in the same directory and are moved into place
with os.replace, so a crash mid-write leaves the previous snapshot intact.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from keygate.storage.base import DocumentStore

logger = logging.getLogger("storage")


class JsonFileStore(DocumentStore):
    def __init__(self, base_path: Path) -> None:
        self.base_path = base_path
        self._closed = False

    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> JsonFileStore:
        base = Path(path)
        base.mkdir(parents=True, exist_ok=True)
        return cls(base)

    def _path(self, name: str) -> Path:
        return self.base_path / f"{name}.json"

    def load(self, name: str) -> dict[str, Any] | None:
        path = self._path(name)
        if not path.exists():
            return None
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("storage_read_failed", extra={"document": name, "error": str(e)})
            return None
        if not raw.strip():
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("storage_document_malformed", extra={"document": name, "error": str(e)})
            return None
        if not isinstance(data, dict):
            logger.warning("storage_document_malformed", extra={"document": name, "error": "not an object"})
            return None
        return data

    def save(self, name: str, data: dict[str, Any]) -> bool:
        return self._write(self._path(name), data, name)

    def archive(self, prefix: str, data: dict[str, Any], stamp: int) -> bool:
        name = f"{prefix}-{stamp}"
        return self._write(self._path(name), data, name)

    def _write(self, path: Path, data: dict[str, Any], name: str) -> bool:
        if self._closed:
            logger.warning("storage_write_after_close", extra={"document": name})
            return False
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.base_path, prefix=f".{path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("storage_write_failed", extra={"document": name, "error": str(e)})
            if tmp_name and os.path.exists(tmp_name):
                try:
                    os.remove(tmp_name)
                except OSError:
                    pass
            return False

    def close(self) -> None:
        self._closed = True
