import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from captcha_provider.config import settings
from captcha_provider.database import get_db
from captcha_provider.middleware.rate_limit import limiter
from captcha_provider.paths import ApiPaths
from captcha_provider.schemas.challenge import (
    IssuedSignature,
    PowChallengeRequest,
    PowChallengeResponse,
    PowSolutionBody,
    PowSolutionResponse,
    ProviderChallengeSignature,
)
from captcha_provider.services.pow_service import generate_challenge, verify_pow_solution

router = APIRouter()
logger = structlog.get_logger()


@router.post(ApiPaths.GET_POW_CAPTCHA_CHALLENGE.route, response_model=PowChallengeResponse)
@limiter.limit(settings.rate_limit_challenges)
async def get_pow_challenge(
    request: Request,
    challenge_data: PowChallengeRequest,
    db: Session = Depends(get_db),
):
    """
    Request a proof-of-work challenge.

    The client finds a nonce, signs the timestamp and posts both to /pow/solution.
    """
    try:
        challenge = generate_challenge(db=db, user=challenge_data.user, dapp=challenge_data.dapp)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("pow_challenge_created", user=challenge_data.user, difficulty=challenge.difficulty)

    return PowChallengeResponse(
        challenge=challenge.challenge,
        difficulty=challenge.difficulty,
        timestamp=challenge.timestamp,
        signature=IssuedSignature(provider=ProviderChallengeSignature(challenge=challenge.provider_signature)),
        algorithm="sha256",
    )


@router.post(ApiPaths.SUBMIT_POW_CAPTCHA_SOLUTION.route, response_model=PowSolutionResponse)
@limiter.limit(settings.rate_limit_solutions)
async def submit_pow_solution(
    request: Request,
    body: PowSolutionBody,
    db: Session = Depends(get_db),
):
    try:
        verified = verify_pow_solution(db, body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PowSolutionResponse(verified=verified)
