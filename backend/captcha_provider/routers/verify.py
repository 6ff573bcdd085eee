from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from captcha_provider.config import settings
from captcha_provider.database import get_db
from captcha_provider.middleware.rate_limit import limiter
from captcha_provider.paths import ApiPaths
from captcha_provider.schemas.verify import (
    ImageVerificationResponse,
    ServerPowVerifyBody,
    VerificationResponse,
    VerifySolutionBody,
)
from captcha_provider.services.image_captcha_service import verify_image_token
from captcha_provider.services.pow_service import verify_pow_token

router = APIRouter()


@router.post(ApiPaths.VERIFY_IMAGE_CAPTCHA_SOLUTION_DAPP.route, response_model=ImageVerificationResponse)
@limiter.limit(settings.rate_limit_verifications)
async def verify_image_solution(
    request: Request,
    body: VerifySolutionBody,
    db: Session = Depends(get_db),
):
    """Called by dapp backends with a procaptcha token signed by the dapp."""
    try:
        return verify_image_token(db, body.token, body.dapp_user_signature, body.max_verified_time)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(ApiPaths.VERIFY_POW_CAPTCHA_SOLUTION.route, response_model=VerificationResponse)
@limiter.limit(settings.rate_limit_verifications)
async def verify_pow(
    request: Request,
    body: ServerPowVerifyBody,
    db: Session = Depends(get_db),
):
    try:
        status, verified = verify_pow_token(db, body.token, body.dapp_signature, body.verified_timeout)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return VerificationResponse(status=status, verified=verified)
