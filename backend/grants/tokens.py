"""Opaque link token generation."""

import secrets
import string

# URL-safe, 64 symbols: 6 bits of entropy per character.
TOKEN_ALPHABET = string.ascii_letters + string.digits + "_-"
DEFAULT_TOKEN_LENGTH = 8
MIN_TOKEN_LENGTH = 8


def generate_token(length: int = DEFAULT_TOKEN_LENGTH) -> str:
    """Return a random token of exactly ``length`` characters.

    Drawn from the OS CSPRNG, so tokens carry no relation to the media
    they point at or to the time they were issued.

    Raises:
        ValueError: If ``length`` is below the minimum.
    """
    if length < MIN_TOKEN_LENGTH:
        raise ValueError(f"Token length must be at least {MIN_TOKEN_LENGTH}")
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))
