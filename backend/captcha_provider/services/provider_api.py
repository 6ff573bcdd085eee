"""Client for another Provider's verification endpoints."""

import httpx
import structlog

from captcha_provider.exceptions import CollaboratorError
from captcha_provider.paths import ApiPaths

logger = structlog.get_logger()

COLLABORATOR = "provider"


class ProviderApiClient:
    def __init__(self, provider_url: str, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = provider_url if provider_url.startswith("http") else f"https://{provider_url}"
        self.timeout = timeout
        self.transport = transport

    async def _post(self, path: ApiPaths, body: dict) -> dict:
        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(path.value, json=body)
        except httpx.RequestError as e:
            logger.error("provider_request_error", provider_url=self.base_url, error=str(e))
            raise CollaboratorError("Provider unreachable", collaborator=COLLABORATOR) from e

        if response.status_code >= 500:
            logger.error("provider_error", provider_url=self.base_url, status_code=response.status_code)
            raise CollaboratorError(
                f"Provider returned {response.status_code}",
                collaborator=COLLABORATOR,
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            # 4xx: the Provider answered and refused
            return {"status": f"Rejected by provider ({response.status_code})", "verified": False}

        try:
            payload = response.json()
        except ValueError as e:
            raise CollaboratorError("Provider sent invalid JSON", collaborator=COLLABORATOR) from e
        if not isinstance(payload, dict):
            raise CollaboratorError("Provider sent an unexpected payload", collaborator=COLLABORATOR)
        return payload

    async def verify_dapp_user(self, token: str, signature: str, max_verified_time: int | None = None) -> dict:
        body: dict = {"token": token, "dappUserSignature": signature}
        if max_verified_time is not None:
            body["maxVerifiedTime"] = max_verified_time
        return await self._post(ApiPaths.VERIFY_IMAGE_CAPTCHA_SOLUTION_DAPP, body)

    async def verify_pow(self, token: str, signature: str, verified_timeout: int | None = None) -> dict:
        body: dict = {"token": token, "dappSignature": signature}
        if verified_timeout is not None:
            body["verifiedTimeout"] = verified_timeout
        return await self._post(ApiPaths.VERIFY_POW_CAPTCHA_SOLUTION, body)
