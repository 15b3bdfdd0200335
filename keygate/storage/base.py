from abc import ABC, abstractmethod
from typing import Any


class DocumentStore(ABC):
    """
    Whole-document key-value storage.

    Every document is read and rewritten in full; there is no incremental
    format and no schema versioning. Implementations never raise on bad
    data: ``load`` returns None for missing or malformed documents and
    ``save``/``archive`` return False (after logging) when the write fails.
    """

    @abstractmethod
    def load(self, name: str) -> dict[str, Any] | None:
        raise NotImplementedError

    @abstractmethod
    def save(self, name: str, data: dict[str, Any]) -> bool:
        raise NotImplementedError

    @abstractmethod
    def archive(self, prefix: str, data: dict[str, Any], stamp: int) -> bool:
        """Write a one-off copy of ``data`` named ``{prefix}-{stamp}``."""
        raise NotImplementedError

    def close(self) -> None:
        """Release resources. Writes are synchronous, nothing to flush."""
