"""
Secret generation: fixed-length opaque tokens over a printable alphabet.
"""
import secrets
import string

SECRET_LENGTH = 27
SECRET_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits + "!@#$%^&*()-_=+[]{}|;:,.<>?"


def generate_secret(length: int = SECRET_LENGTH, alphabet: str = SECRET_ALPHABET) -> str:
    """
    Return ``length`` characters drawn from ``alphabet``.

    One CSPRNG byte per character, reduced modulo the alphabet size. With 88
    symbols the low residues are slightly favoured (256 % 88 != 0); that bias
    is accepted, the token is a shared pass phrase rather than key material.
    """
    if length < 1:
        raise ValueError("length must be at least 1")
    if not alphabet:
        raise ValueError("alphabet must not be empty")
    size = len(alphabet)
    return "".join(alphabet[b % size] for b in secrets.token_bytes(length))
