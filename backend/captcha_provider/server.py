"""
Relying-party side: how a dapp backend checks a procaptcha token.

The dapp signs the encoded token with its own keypair and hands it to the
freshness gate, which consults only the Provider drawn on chain for the
token's block.
"""

import structlog
from solders.keypair import Keypair

from captcha_provider.config import settings
from captcha_provider.core.freshness import FreshnessGate, VerificationOutcome
from captcha_provider.core.signing import sign_message
from captcha_provider.core.token import decode_token, encode_token
from captcha_provider.services.chain_client import ChainGatewayClient
from captcha_provider.services.provider_api import ProviderApiClient

logger = structlog.get_logger()


def build_freshness_gate() -> FreshnessGate:
    chain = ChainGatewayClient(settings.chain_gateway_url, timeout=settings.chain_timeout_seconds)
    return FreshnessGate(
        chain=chain,
        provider_factory=lambda url: ProviderApiClient(url, timeout=settings.chain_timeout_seconds),
        solution_threshold=settings.solution_threshold,
        max_block_age=settings.max_block_age,
    )


class VerificationServer:
    def __init__(self, dapp_keypair: Keypair, gate: FreshnessGate | None = None):
        self.dapp_keypair = dapp_keypair
        self.gate = gate or build_freshness_gate()

    async def verify(self, token: str, max_verified_time: int | None = None) -> VerificationOutcome:
        """Raises MalformedInputError when ``token`` cannot be decoded."""
        payload = decode_token(token)
        # The gate forwards the canonical encoding, so that is what gets signed.
        signature = sign_message(self.dapp_keypair, encode_token(payload))
        outcome = await self.gate.is_verified(payload, signature, max_verified_time)
        logger.info("token_verified", dapp=payload.dapp, outcome=outcome.value)
        return outcome
