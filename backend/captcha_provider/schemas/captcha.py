from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CaptchaItem(CamelModel):
    hash: str = ""
    data: str = Field(..., min_length=1, description="Text, data: URI or image URL")
    type: Literal["image", "text"] = "image"


class Captcha(CamelModel):
    captcha_id: str | None = None
    captcha_content_id: str | None = None
    dataset_id: str | None = None
    items: list[CaptchaItem] = Field(..., min_length=1)
    target: str
    solution: list[int] | None = None
    salt: str = ""


class CaptchaWithProof(CamelModel):
    captcha: Captcha
    proof: list[list[str]]


class CaptchaSolution(CamelModel):
    captcha_content_id: str = Field(..., min_length=1)
    salt: str
    solution: list[int]


class CaptchaIdAndProof(CamelModel):
    captcha_id: str
    proof: list[list[str]]


class SubmissionMode(str, Enum):
    """How a solved batch proves the user's account: signature only, or on-chain commit."""

    WEB2 = "web2"
    WEB3 = "web3"


class CaptchaResponseBody(CamelModel):
    captchas: list[CaptchaWithProof]
    request_hash: str


class CaptchaSolutionBody(CamelModel):
    user: str = Field(..., min_length=1)
    dapp: str = Field(..., min_length=1)
    captchas: list[CaptchaSolution] = Field(..., min_length=1)
    request_hash: str = Field(..., min_length=64, max_length=64, pattern=r"^[a-f0-9]{64}$")
    signature: str | None = None
    mode: SubmissionMode = SubmissionMode.WEB2


class CaptchaSolutionResponse(CamelModel):
    captchas: list[CaptchaIdAndProof]
    verified: bool
    status: str
    commitment_id: str | None = None
