"""Temporary credential generation."""
from __future__ import annotations
import secrets
import string

TEMP_PASSWORD_LENGTH = 12
SYMBOLS = "!@#$%^&*"
ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits + SYMBOLS

_CHARACTER_CLASSES = (
    string.ascii_uppercase,
    string.ascii_lowercase,
    string.digits,
    SYMBOLS,
)

_rng = secrets.SystemRandom()


def generate_temp_password(length: int = TEMP_PASSWORD_LENGTH) -> str:
    """
    Generate a temporary password that satisfies the directory policy.

    One character is drawn from each class (uppercase, lowercase, digit,
    symbol), the rest uniformly from the combined alphabet, and the result
    is shuffled so no class is pinned to a position.

    Args:
        length: Password length (default and minimum: 12)

    Returns:
        Random password string
    """
    if length < TEMP_PASSWORD_LENGTH:
        raise ValueError(f"Password length must be at least {TEMP_PASSWORD_LENGTH}")

    chars = [secrets.choice(charset) for charset in _CHARACTER_CLASSES]
    chars.extend(secrets.choice(ALPHABET) for _ in range(length - len(chars)))
    _rng.shuffle(chars)
    return "".join(chars)
