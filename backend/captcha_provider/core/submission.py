"""
Account-ownership checks for a solved image batch, one per submission mode.

Web2 submissions prove the user controls the account by signing the request
hash. Web3 submissions point at an on-chain commit of the same commitment id.
The mode is chosen once per request and dispatched through SUBMISSION_CHECKS.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from captcha_provider.core.freshness import ChainQuery
from captcha_provider.core.signing import verify_signature
from captcha_provider.exceptions import MalformedInputError
from captcha_provider.schemas.captcha import SubmissionMode


@dataclass(frozen=True)
class SubmissionContext:
    user: str
    dapp: str
    request_hash: str
    commitment_id: str
    signature: str | None
    chain: ChainQuery | None = None


async def check_web2(ctx: SubmissionContext) -> bool:
    if not ctx.signature:
        raise MalformedInputError("Web2 submissions require a signature over the request hash")
    return verify_signature(ctx.user, ctx.request_hash, ctx.signature)


async def check_web3(ctx: SubmissionContext) -> bool:
    if ctx.chain is None:
        raise MalformedInputError("Web3 submissions are not supported without a chain connection")
    commitment = await ctx.chain.get_commitment(ctx.commitment_id)
    if commitment is None:
        return False
    return commitment.get("user") == ctx.user and commitment.get("dapp") == ctx.dapp


SUBMISSION_CHECKS: dict[SubmissionMode, Callable[[SubmissionContext], Awaitable[bool]]] = {
    SubmissionMode.WEB2: check_web2,
    SubmissionMode.WEB3: check_web3,
}


async def check_submission(mode: SubmissionMode, ctx: SubmissionContext) -> bool:
    return await SUBMISSION_CHECKS[mode](ctx)
