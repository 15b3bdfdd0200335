"""
Key lifecycle: generation, lazy rotation, privileged reset, snapshotting.
"""
from keygate.keys.generator import SECRET_ALPHABET, SECRET_LENGTH, generate_secret
from keygate.keys.models import KeyDenial, KeyGrant, RemainingTtl, SecretRecord
from keygate.keys.store import KeyStore

__all__ = [
    "KeyDenial",
    "KeyGrant",
    "KeyStore",
    "RemainingTtl",
    "SECRET_ALPHABET",
    "SECRET_LENGTH",
    "SecretRecord",
    "generate_secret",
]
