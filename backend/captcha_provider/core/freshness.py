"""
Freshness gate: tie a verification claim to the on-chain provider draw.

A Provider cannot vouch for itself. Before trusting a Provider's verdict the
relying party asks the chain which Provider was randomly drawn for the
(user, dapp) pair at the claimed block, and only that Provider's endpoint is
consulted. Nothing is cached between calls: the draw is block scoped.

Per call: Start -> BlockResolved -> ProviderMatchChecked ->
{VERIFIED | NOT_VERIFIED | INDETERMINATE}.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

import structlog

from captcha_provider.core.token import ProcaptchaOutput, encode_token
from captcha_provider.exceptions import CollaboratorError

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProviderInfo:
    url: str
    dataset_id: str | None = None
    dataset_id_content: str | None = None


@dataclass(frozen=True)
class RandomProviderRecord:
    provider: ProviderInfo
    block_number: int


class ChainQuery(Protocol):
    """Read-only view of the chain consumed by the protocol core."""

    async def get_block_number(self) -> int: ...

    async def get_random_provider(self, user: str, dapp: str, block_number: int) -> RandomProviderRecord: ...

    async def dapp_operator_is_human_user(self, user: str, threshold: int) -> bool: ...

    async def get_commitment(self, commitment_id: str) -> dict[str, Any] | None: ...


class ProviderVerifier(Protocol):
    """The verification endpoints of one remote Provider."""

    async def verify_dapp_user(self, token: str, signature: str, max_verified_time: int | None = None) -> dict: ...

    async def verify_pow(self, token: str, signature: str, verified_timeout: int | None = None) -> dict: ...


class VerificationOutcome(str, Enum):
    VERIFIED = "verified"
    NOT_VERIFIED = "not_verified"
    INDETERMINATE = "indeterminate"


def trim_provider_url(url: str) -> str:
    """Drop the scheme and any trailing slashes so URLs compare by host and path."""
    _, sep, rest = url.partition("://")
    return (rest if sep else url).rstrip("/")


class FreshnessGate:
    def __init__(
        self,
        chain: ChainQuery,
        provider_factory: Callable[[str], ProviderVerifier],
        solution_threshold: int,
        max_block_age: int | None = None,
    ):
        self.chain = chain
        self.provider_factory = provider_factory
        self.solution_threshold = solution_threshold
        self.max_block_age = max_block_age

    async def is_verified(
        self,
        payload: ProcaptchaOutput,
        signature: str,
        max_verified_time: int | None = None,
    ) -> VerificationOutcome:
        """
        Decide whether ``payload`` is backed by the Provider drawn at its block.

        Args:
            payload: The decoded procaptcha token
            signature: The dapp's signature over the encoded token, forwarded to the Provider
            max_verified_time: Maximum age in milliseconds, forwarded to the Provider

        Returns:
            INDETERMINATE if the chain or the Provider could not be consulted,
            otherwise VERIFIED or NOT_VERIFIED
        """
        log = logger.bind(user=payload.user, dapp=payload.dapp, block_number=payload.block_number)
        try:
            if not await self._block_is_fresh(payload.block_number):
                log.info("freshness_stale_block")
                return VerificationOutcome.NOT_VERIFIED

            record = await self.chain.get_random_provider(payload.user, payload.dapp, payload.block_number)
            if record.block_number != payload.block_number:
                log.info("freshness_block_mismatch", record_block=record.block_number)
                return VerificationOutcome.NOT_VERIFIED

            drawn_url = trim_provider_url(record.provider.url)
            if drawn_url != trim_provider_url(payload.provider_url):
                log.info("freshness_provider_mismatch", drawn_provider=drawn_url)
                return VerificationOutcome.NOT_VERIFIED

            if not drawn_url:
                is_human = await self.chain.dapp_operator_is_human_user(payload.user, self.solution_threshold)
                return VerificationOutcome.VERIFIED if is_human else VerificationOutcome.NOT_VERIFIED

            provider = self.provider_factory(record.provider.url)
            token = encode_token(payload)
            if payload.is_pow:
                result = await provider.verify_pow(token, signature, max_verified_time)
            else:
                result = await provider.verify_dapp_user(token, signature, max_verified_time)
        except CollaboratorError as e:
            log.warning("freshness_indeterminate", collaborator=e.collaborator, error=str(e))
            return VerificationOutcome.INDETERMINATE

        verified = bool(result.get("verified"))
        log.info("freshness_checked", verified=verified, status=result.get("status"))
        return VerificationOutcome.VERIFIED if verified else VerificationOutcome.NOT_VERIFIED

    async def _block_is_fresh(self, block_number: int) -> bool:
        current = await self.chain.get_block_number()
        if block_number > current:
            return False
        if self.max_block_age is not None and current - block_number > self.max_block_age:
            return False
        return True
