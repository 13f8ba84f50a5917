"""Host token handling for requests forwarded by the game host."""

from __future__ import annotations

import hashlib
import hmac
import os
import secrets


TOKEN_BYTES = 24


def generate_token() -> str:
    """Generate a URL-safe token for the game host bridge."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_token(token: str, server_salt: str) -> str:
    """Create deterministic token hash via sha256(token + server_salt)."""
    payload = f"{token}{server_salt}".encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def verify_token(raw_token: str, expected_hash: str, server_salt: str) -> bool:
    """Compare a raw token against a stored hash in constant time."""
    return hmac.compare_digest(hash_token(raw_token, server_salt), expected_hash)


def main() -> None:
    """Print a fresh host token and its hash for CLANZONE_HOST_TOKEN_HASH."""
    token = generate_token()
    salt = os.getenv("CLANZONE_SERVER_SALT", "dev-salt")
    print(f"token: {token}")
    print(f"CLANZONE_HOST_TOKEN_HASH={hash_token(token, salt)}")


if __name__ == "__main__":
    main()
