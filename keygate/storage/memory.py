import copy
from typing import Any

from keygate.storage.base import DocumentStore


class InMemoryStore(DocumentStore):
    """Process-local store with the same whole-document semantics. Used in tests."""

    def __init__(self, documents: dict[str, dict[str, Any]] | None = None) -> None:
        self.documents: dict[str, dict[str, Any]] = copy.deepcopy(documents or {})
        self.fail_writes = False

    def load(self, name: str) -> dict[str, Any] | None:
        data = self.documents.get(name)
        return copy.deepcopy(data) if isinstance(data, dict) else None

    def save(self, name: str, data: dict[str, Any]) -> bool:
        if self.fail_writes:
            return False
        self.documents[name] = copy.deepcopy(data)
        return True

    def archive(self, prefix: str, data: dict[str, Any], stamp: int) -> bool:
        return self.save(f"{prefix}-{stamp}", data)
