"""
Utility functions for ID generation and payload checks
"""
import itertools
import random
import string

from .errors import MalformedMessage

_counter = itertools.count(1)


def generate_client_id(length: int = 9) -> str:
    """Generate a client ID; the sequence suffix keeps ids from being reused"""
    alphabet = string.ascii_lowercase + string.digits
    suffix = "".join(random.choice(alphabet) for _ in range(length))
    return f"client_{next(_counter)}_{suffix}"


def require_str(value, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise MalformedMessage(f"{what} must be a non-empty string")
    return value
