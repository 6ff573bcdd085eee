from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from captcha_provider.config import settings
from captcha_provider.database import get_db
from captcha_provider.exceptions import CollaboratorError
from captcha_provider.middleware.rate_limit import limiter
from captcha_provider.paths import ApiPaths
from captcha_provider.schemas.captcha import CaptchaResponseBody, CaptchaSolutionBody, CaptchaSolutionResponse
from captcha_provider.services.chain_client import ChainGatewayClient, get_chain
from captcha_provider.services.image_captcha_service import get_captcha_challenge, submit_captcha_solution

router = APIRouter()


@router.get(
    ApiPaths.GET_IMAGE_CAPTCHA_CHALLENGE.route + "/{dataset_id}/{user}/{dapp}/{block_number}",
    response_model=CaptchaResponseBody,
)
@limiter.limit(settings.rate_limit_challenges)
async def get_image_captcha_challenge(
    request: Request,
    dataset_id: str,
    user: str,
    dapp: str,
    block_number: int,
    db: Session = Depends(get_db),
):
    """
    Serve a batch of captchas from a dataset, each with its Merkle proof.

    The returned requestHash must accompany the solution.
    """
    try:
        return get_captcha_challenge(db, dataset_id=dataset_id, user=user, dapp=dapp, block_number=block_number)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(ApiPaths.SUBMIT_IMAGE_CAPTCHA_SOLUTION.route, response_model=CaptchaSolutionResponse)
@limiter.limit(settings.rate_limit_solutions)
async def submit_image_captcha_solution(
    request: Request,
    body: CaptchaSolutionBody,
    db: Session = Depends(get_db),
    chain: ChainGatewayClient = Depends(get_chain),
):
    """Check a solved batch. A wrong answer is a 200 with verified=false."""
    try:
        return await submit_captcha_solution(db, body, chain=chain)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CollaboratorError as e:
        raise HTTPException(status_code=502, detail=str(e))
