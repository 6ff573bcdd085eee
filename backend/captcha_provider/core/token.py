"""Procaptcha token: the verdict bundle the browser hands to the dapp backend."""

import binascii
import json

from pydantic import Field, ValidationError

from captcha_provider.core.hashing import canonical_json
from captcha_provider.exceptions import MalformedInputError
from captcha_provider.schemas.captcha import CamelModel


class ProcaptchaOutput(CamelModel):
    user: str = Field(..., min_length=1)
    dapp: str = Field(..., min_length=1)
    provider_url: str
    block_number: int = Field(..., ge=0)
    commitment_id: str | None = None
    challenge: str | None = None
    nonce: int | None = None
    timestamp: int | None = None

    @property
    def is_pow(self) -> bool:
        return self.challenge is not None


def encode_token(output: ProcaptchaOutput) -> str:
    """Hex of the canonical JSON of the output (camelCase keys, nulls dropped)."""
    return canonical_json(output.model_dump(by_alias=True, exclude_none=True)).hex()


def decode_token(token: str) -> ProcaptchaOutput:
    try:
        data = json.loads(bytes.fromhex(token.removeprefix("0x")))
    except (ValueError, binascii.Error) as e:
        raise MalformedInputError("Token is not hex-encoded JSON") from e
    if not isinstance(data, dict):
        raise MalformedInputError("Token must encode a JSON object")
    try:
        output = ProcaptchaOutput.model_validate(data)
    except ValidationError as e:
        raise MalformedInputError(f"Token is missing fields: {e.error_count()} error(s)") from e
    if output.commitment_id is None and output.challenge is None:
        raise MalformedInputError("Token needs a commitmentId or a challenge")
    return output
