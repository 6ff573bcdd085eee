"""Shared test utilities."""

import base64
import io
from datetime import UTC, datetime

from PIL import Image

from captcha_provider.core.freshness import ProviderInfo, RandomProviderRecord
from captcha_provider.exceptions import CollaboratorError
from captcha_provider.schemas.dataset import DatasetCaptcha, DatasetCreate


def utcnow():
    """Get current UTC time as naive datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def png_data_uri(color: tuple[int, int, int], size: tuple[int, int] = (4, 4)) -> str:
    """A tiny solid-colour PNG as a base64 data URI."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()


def image_item(color: tuple[int, int, int]) -> dict:
    return {"data": png_data_uri(color), "type": "image"}


def sample_dataset(captcha_count: int = 3) -> DatasetCreate:
    """Solved dataset of image captchas; captcha ``i`` has answer ``[i % 3]``."""
    captchas = []
    for i in range(captcha_count):
        items = [image_item((i * 40 % 256, j * 80, 10 + i)) for j in range(3)]
        captchas.append(DatasetCaptcha.model_validate({"items": items, "target": f"target-{i}", "solution": [i % 3]}))
    return DatasetCreate(captchas=captchas)


class FakeChain:
    """In-memory chain: a fixed block, one drawn provider and a commitment store."""

    def __init__(self, block_number: int = 100, provider_url: str = "http://localhost:9229"):
        self.block_number = block_number
        self.provider_url = provider_url
        self.record_block: int | None = None
        self.is_human = False
        self.commitments: dict[str, dict] = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise CollaboratorError("chain down", collaborator="chain")

    async def get_block_number(self) -> int:
        self._check()
        return self.block_number

    async def get_random_provider(self, user: str, dapp: str, block_number: int) -> RandomProviderRecord:
        self._check()
        return RandomProviderRecord(
            provider=ProviderInfo(url=self.provider_url),
            block_number=self.record_block if self.record_block is not None else block_number,
        )

    async def dapp_operator_is_human_user(self, user: str, threshold: int) -> bool:
        self._check()
        return self.is_human

    async def get_commitment(self, commitment_id: str) -> dict | None:
        self._check()
        return self.commitments.get(commitment_id)


class FakeProvider:
    """Records verification calls and answers with a fixed verdict."""

    def __init__(self, verified: bool = True, fail: bool = False):
        self.verified = verified
        self.fail = fail
        self.calls: list[tuple[str, str, str]] = []

    async def verify_dapp_user(self, token, signature, max_verified_time=None) -> dict:
        return self._answer("image", token, signature)

    async def verify_pow(self, token, signature, verified_timeout=None) -> dict:
        return self._answer("pow", token, signature)

    def _answer(self, kind, token, signature) -> dict:
        if self.fail:
            raise CollaboratorError("provider down", collaborator="provider")
        self.calls.append((kind, token, signature))
        return {"status": "ok", "verified": self.verified}
