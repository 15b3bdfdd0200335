from keygate.storage.base import DocumentStore
from keygate.storage.json_file import JsonFileStore
from keygate.storage.memory import InMemoryStore

__all__ = [
    "DocumentStore",
    "InMemoryStore",
    "JsonFileStore",
]
