from captcha_provider.models.captcha_request import PendingCaptchaRequest
from captcha_provider.models.challenge import PowChallengeRecord
from captcha_provider.models.commitment import ImageCommitment
from captcha_provider.models.dataset import Dataset, StoredCaptcha

__all__ = [
    "Dataset",
    "ImageCommitment",
    "PendingCaptchaRequest",
    "PowChallengeRecord",
    "StoredCaptcha",
]
