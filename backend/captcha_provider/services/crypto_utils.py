from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError

from captcha_provider.config import settings

# Configure Argon2id with secure parameters
# time_cost=3, memory_cost=65536 (64MB), parallelism=4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)


def hash_token(token: str) -> str:
    """Hash an admin token using Argon2id (store the result in ADMIN_TOKEN_HASH)."""
    return ph.hash(token)


def verify_token(token: str, token_hash: str) -> bool:
    """Verify a token against its Argon2id hash."""
    try:
        ph.verify(token_hash, token)
        return True
    except (VerifyMismatchError, InvalidHashError):
        return False


def verify_admin_token(token: str) -> bool:
    """Admin endpoints are disabled until an admin token hash is configured."""
    if not settings.admin_token_hash:
        return False
    return verify_token(token, settings.admin_token_hash)
