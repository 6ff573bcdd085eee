from datetime import UTC, datetime, timedelta

import structlog
from sqlalchemy.orm import Session

from captcha_provider.config import settings
from captcha_provider.core.pow import PowChallenge, PowSolution, issue_challenge, now_ms, verify_solution
from captcha_provider.core.signing import verify_signature
from captcha_provider.core.token import decode_token
from captcha_provider.exceptions import MalformedInputError
from captcha_provider.models.challenge import PowChallengeRecord
from captcha_provider.schemas.challenge import PowSolutionBody
from captcha_provider.services.signer_service import get_provider_address, get_provider_keypair

logger = structlog.get_logger()


def generate_challenge(db: Session, user: str, dapp: str) -> PowChallenge:
    """Issue a signed proof-of-work challenge and remember it for single use."""
    challenge = issue_challenge(get_provider_keypair(), user, dapp, settings.pow_difficulty)

    db.add(
        PowChallengeRecord(
            challenge=challenge.challenge,
            user=user,
            dapp=dapp,
            difficulty=challenge.difficulty,
            timestamp=challenge.timestamp,
            provider_signature=challenge.provider_signature,
        )
    )
    db.commit()

    return challenge


def verify_pow_solution(db: Session, body: PowSolutionBody) -> bool:
    """
    Verify a submitted nonce.

    The challenge must have been issued by this Provider and not checked
    before. Returns False for a wrong answer; raises MalformedInputError
    (a ValueError) when the submission cannot be parsed.
    """
    record = db.get(PowChallengeRecord, body.challenge)
    if record is None:
        logger.info("pow_challenge_unknown", user=body.user)
        return False
    if record.checked:
        logger.info("pow_challenge_reused", user=body.user)
        return False

    challenge = PowChallenge(
        challenge=body.challenge,
        difficulty=body.difficulty,
        timestamp=body.timestamp,
        provider_signature=body.signature.provider.challenge,
    )
    solution = PowSolution(
        challenge=body.challenge,
        nonce=body.nonce,
        user_timestamp_signature=body.signature.user.timestamp,
        user=body.user,
        dapp=body.dapp,
    )
    result = verify_solution(
        challenge,
        solution,
        provider_address=get_provider_address(),
        now=now_ms(),
        verified_timeout=body.verified_timeout,
    )

    record.checked = True
    record.verified = result.verified
    db.commit()

    logger.info("pow_solution_checked", user=body.user, verified=result.verified, reason=result.reason)
    return result.verified


def verify_pow_token(db: Session, token: str, dapp_signature: str, verified_timeout: int) -> tuple[str, bool]:
    """
    Confirm for a dapp backend that the user behind ``token`` solved a challenge.

    Each solved challenge can be confirmed once. Returns (status, verified).
    """
    output = decode_token(token)
    if output.challenge is None:
        raise MalformedInputError("Token does not reference a PoW challenge")

    if not verify_signature(output.dapp, token, dapp_signature):
        return "Invalid dapp signature", False

    record = db.get(PowChallengeRecord, output.challenge)
    if record is None or record.user != output.user or record.dapp != output.dapp:
        return "Challenge not found", False
    if not record.verified:
        return "Challenge not solved", False
    if record.server_checked:
        return "Challenge already verified", False
    if now_ms() - record.timestamp > verified_timeout:
        return "Challenge expired", False

    record.server_checked = True
    db.commit()
    return "Verified", True


def cleanup_expired_challenges(db: Session) -> int:
    """Delete challenges that are too old to be solved or confirmed. Returns count of deleted rows."""
    cutoff = datetime.now(UTC).replace(tzinfo=None) - timedelta(seconds=settings.pow_challenge_ttl_seconds)
    result = db.query(PowChallengeRecord).filter(PowChallengeRecord.created_at < cutoff).delete()
    db.commit()
    return result
