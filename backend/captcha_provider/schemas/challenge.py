from pydantic import Field

from captcha_provider.config import settings
from captcha_provider.schemas.captcha import CamelModel


class PowChallengeRequest(CamelModel):
    user: str = Field(..., min_length=1)
    dapp: str = Field(..., min_length=1)


class ProviderChallengeSignature(CamelModel):
    challenge: str = Field(..., min_length=1, description="Provider signature over the challenge")


class UserTimestampSignature(CamelModel):
    timestamp: str = Field(..., min_length=1, description="User signature over the timestamp")


class IssuedSignature(CamelModel):
    provider: ProviderChallengeSignature


class SolutionSignature(CamelModel):
    provider: ProviderChallengeSignature
    user: UserTimestampSignature


class PowChallengeResponse(CamelModel):
    challenge: str
    difficulty: int
    timestamp: int
    signature: IssuedSignature
    algorithm: str = "sha256"


class PowSolutionBody(CamelModel):
    challenge: str = Field(..., min_length=1)
    difficulty: int = Field(..., ge=0, le=64)
    timestamp: int = Field(..., ge=0)
    signature: SolutionSignature
    nonce: int = Field(..., ge=0)
    user: str = Field(..., min_length=1)
    dapp: str = Field(..., min_length=1)
    verified_timeout: int = Field(default=settings.pow_verified_timeout_ms, ge=0)


class PowSolutionResponse(CamelModel):
    verified: bool
