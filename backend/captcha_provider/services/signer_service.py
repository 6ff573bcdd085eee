from functools import lru_cache

import structlog
from solders.keypair import Keypair

from captcha_provider.config import settings
from captcha_provider.core.signing import address_of

logger = structlog.get_logger()


@lru_cache(maxsize=1)
def get_provider_keypair() -> Keypair:
    """
    Load the Provider's signing keypair.

    Without PROVIDER_SECRET_KEY an ephemeral keypair is generated; challenges
    it signs stop verifying once the process restarts.
    """
    if settings.provider_secret_key:
        keypair = Keypair.from_base58_string(settings.provider_secret_key)
    else:
        keypair = Keypair()
        logger.warning("provider_key_ephemeral", address=address_of(keypair))
    return keypair


def get_provider_address() -> str:
    return address_of(get_provider_keypair())
