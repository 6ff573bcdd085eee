from pydantic import Field

from captcha_provider.config import settings
from captcha_provider.schemas.captcha import CamelModel


class VerifySolutionBody(CamelModel):
    token: str = Field(..., min_length=1)
    dapp_user_signature: str = Field(..., min_length=1, description="Dapp signature over the token")
    max_verified_time: int = Field(default=settings.image_max_verified_time_ms, ge=0)


class ServerPowVerifyBody(CamelModel):
    token: str = Field(..., min_length=1)
    dapp_signature: str = Field(..., min_length=1, description="Dapp signature over the token")
    verified_timeout: int = Field(default=settings.pow_verified_timeout_ms, ge=0)


class VerificationResponse(CamelModel):
    status: str
    verified: bool


class ImageVerificationResponse(VerificationResponse):
    commitment_id: str | None = None
    block_number: int | None = None
