from captcha_provider.schemas.captcha import (
    Captcha,
    CaptchaIdAndProof,
    CaptchaItem,
    CaptchaResponseBody,
    CaptchaSolution,
    CaptchaSolutionBody,
    CaptchaSolutionResponse,
    CaptchaWithProof,
    SubmissionMode,
)
from captcha_provider.schemas.challenge import (
    PowChallengeRequest,
    PowChallengeResponse,
    PowSolutionBody,
    PowSolutionResponse,
)
from captcha_provider.schemas.dataset import (
    DatasetCreate,
    DatasetResponse,
    ProviderDetailsResponse,
)
from captcha_provider.schemas.verify import (
    ImageVerificationResponse,
    ServerPowVerifyBody,
    VerificationResponse,
    VerifySolutionBody,
)

__all__ = [
    "Captcha",
    "CaptchaIdAndProof",
    "CaptchaItem",
    "CaptchaResponseBody",
    "CaptchaSolution",
    "CaptchaSolutionBody",
    "CaptchaSolutionResponse",
    "CaptchaWithProof",
    "DatasetCreate",
    "DatasetResponse",
    "ImageVerificationResponse",
    "PowChallengeRequest",
    "PowChallengeResponse",
    "PowSolutionBody",
    "PowSolutionResponse",
    "ProviderDetailsResponse",
    "ServerPowVerifyBody",
    "SubmissionMode",
    "VerificationResponse",
    "VerifySolutionBody",
]
