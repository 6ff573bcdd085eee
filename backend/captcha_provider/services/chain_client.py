"""
HTTP client for the chain gateway that exposes the captcha contract's queries.

Gateway endpoints (JSON):
- GET /blocks/latest                          -> {"blockNumber": int}
- GET /random-provider?user&dapp&blockNumber  -> {"provider": {"url", "datasetId", "datasetIdContent"}, "blockNumber"}
- GET /is-human?user&threshold                -> {"isHuman": bool}
- GET /commitments/{commitment_id}            -> {"user", "dapp", "status"} or 404
"""

from typing import Any

import httpx
import structlog

from captcha_provider.config import settings
from captcha_provider.core.freshness import ProviderInfo, RandomProviderRecord
from captcha_provider.exceptions import CollaboratorError

logger = structlog.get_logger()

COLLABORATOR = "chain"


class ChainGatewayClient:
    def __init__(self, base_url: str, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _get(self, path: str, params: dict | None = None, allow_missing: bool = False) -> dict | None:
        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(path, params=params)
                if allow_missing and response.status_code == 404:
                    return None
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("chain_gateway_error", path=path, status_code=e.response.status_code)
            raise CollaboratorError(
                f"Chain gateway returned {e.response.status_code}",
                collaborator=COLLABORATOR,
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            logger.error("chain_gateway_request_error", path=path, error=str(e))
            raise CollaboratorError("Chain gateway unreachable", collaborator=COLLABORATOR) from e
        except ValueError as e:
            raise CollaboratorError("Chain gateway sent invalid JSON", collaborator=COLLABORATOR) from e

        if not isinstance(data, dict):
            raise CollaboratorError("Chain gateway sent an unexpected payload", collaborator=COLLABORATOR)
        return data

    async def get_block_number(self) -> int:
        data = await self._get("/blocks/latest")
        try:
            return int(data["blockNumber"])
        except (KeyError, TypeError, ValueError) as e:
            raise CollaboratorError("Malformed block response", collaborator=COLLABORATOR) from e

    async def get_random_provider(self, user: str, dapp: str, block_number: int) -> RandomProviderRecord:
        data = await self._get(
            "/random-provider",
            params={"user": user, "dapp": dapp, "blockNumber": block_number},
        )
        try:
            provider = data["provider"]
            return RandomProviderRecord(
                provider=ProviderInfo(
                    url=provider.get("url") or "",
                    dataset_id=provider.get("datasetId"),
                    dataset_id_content=provider.get("datasetIdContent"),
                ),
                block_number=int(data["blockNumber"]),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise CollaboratorError("Malformed random provider response", collaborator=COLLABORATOR) from e

    async def dapp_operator_is_human_user(self, user: str, threshold: int) -> bool:
        data = await self._get("/is-human", params={"user": user, "threshold": threshold})
        return bool(data.get("isHuman"))

    async def get_commitment(self, commitment_id: str) -> dict[str, Any] | None:
        return await self._get(f"/commitments/{commitment_id}", allow_missing=True)


def get_chain() -> ChainGatewayClient:
    """FastAPI dependency; tests override it with an in-memory chain."""
    return ChainGatewayClient(settings.chain_gateway_url, timeout=settings.chain_timeout_seconds)
