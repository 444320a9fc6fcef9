"""Fernet encryption for OAuth tokens stored in the database"""

from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from app.core.config import settings
from app.utils.errors import TokenDecryptionError


@lru_cache()
def get_fernet() -> Fernet:
    key = settings.TOKEN_ENCRYPTION_KEY
    if not key:
        raise RuntimeError(
            "TOKEN_ENCRYPTION_KEY is not set! "
            "Generate one with: python -c 'from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())'"
        )

    try:
        return Fernet(key.encode())
    except Exception as e:
        raise RuntimeError("TOKEN_ENCRYPTION_KEY is invalid. Must be a valid base64 Fernet key.") from e


def encrypt(s: str) -> str:
    """Encrypt a string into a Fernet token."""
    return get_fernet().encrypt(s.encode()).decode()


def decrypt(s: str) -> str:
    """Decrypt a Fernet token back to a string."""
    try:
        return get_fernet().decrypt(s.encode()).decode()
    except InvalidToken as e:
        raise TokenDecryptionError("Failed to decrypt stored token") from e


def looks_like_meta_token(token: str) -> bool:
    """Meta user and system-user access tokens are issued with an EAA prefix"""
    return token.startswith("EAA")
