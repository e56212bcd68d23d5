"""
Security utilities: content hashing and identifier generation.
"""
import hashlib
import secrets
import string


def compute_bytes_hash(data: bytes) -> str:
    """Compute SHA-256 hash of bytes."""
    return hashlib.sha256(data).hexdigest()


def generate_id(prefix: str) -> str:
    """
    Generate a short, prefixed identifier: sig_7KQ2M9XW4PZD

    Confusing characters (O/0, I/1, L) are left out so ids can be read aloud.
    """
    chars = string.ascii_uppercase + string.digits
    chars = chars.replace('O', '').replace('0', '').replace('I', '').replace('1', '').replace('L', '')
    random_part = ''.join(secrets.choice(chars) for _ in range(12))
    return f"{prefix}_{random_part}"
