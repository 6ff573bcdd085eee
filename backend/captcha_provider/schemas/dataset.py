from pydantic import Field

from captcha_provider.schemas.captcha import CamelModel, CaptchaItem


class DatasetCaptcha(CamelModel):
    items: list[CaptchaItem] = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    solution: list[int]
    salt: str | None = None


class DatasetCreate(CamelModel):
    format: str = "SelectAll"
    captchas: list[DatasetCaptcha] = Field(..., min_length=1)


class DatasetResponse(CamelModel):
    dataset_id: str
    dataset_content_id: str
    captcha_count: int


class ProviderDetailsResponse(CamelModel):
    address: str
    url: str
    datasets: list[DatasetResponse]
