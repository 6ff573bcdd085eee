"""
Image captcha flow on the Provider.

Serving a batch stores a pending request bound to a fresh salt; the salt is
handed to the user inside each captcha, so every submission hashes to
solution leaves (and a commitment id) unique to that request.
"""

import secrets
from datetime import UTC

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from captcha_provider.config import settings
from captcha_provider.core.freshness import ChainQuery
from captcha_provider.core.hashing import hash_request, hash_solution
from captcha_provider.core.image import check_solutions
from captcha_provider.core.merkle import MerkleTree
from captcha_provider.core.pow import now_ms
from captcha_provider.core.signing import parse_address, verify_signature
from captcha_provider.core.submission import SubmissionContext, check_submission
from captcha_provider.core.token import decode_token
from captcha_provider.exceptions import MalformedInputError
from captcha_provider.models.captcha_request import PendingCaptchaRequest
from captcha_provider.models.commitment import STATUS_APPROVED, STATUS_DISAPPROVED, ImageCommitment
from captcha_provider.models.dataset import Dataset, StoredCaptcha
from captcha_provider.schemas.captcha import (
    CaptchaIdAndProof,
    CaptchaResponseBody,
    CaptchaSolutionBody,
    CaptchaSolutionResponse,
    CaptchaWithProof,
)
from captcha_provider.schemas.verify import ImageVerificationResponse
from captcha_provider.services.dataset_service import to_captcha

logger = structlog.get_logger()

STATUS_CORRECT = "You correctly answered the captchas"
STATUS_INCORRECT = "You answered one or more captchas incorrectly. Please try again"
STATUS_INVALID_REQUEST = "Invalid request hash"
STATUS_EXPIRED = "Captcha request expired"
STATUS_INVALID_OWNER = "Account ownership could not be proven"
STATUS_DUPLICATE_COMMITMENT = "Commitment already recorded"


def get_captcha_challenge(
    db: Session,
    dataset_id: str,
    user: str,
    dapp: str,
    block_number: int,
) -> CaptchaResponseBody:
    """
    Serve a random batch of captchas from ``dataset_id`` with their proofs.

    Raises ValueError for an unknown dataset or a malformed user address.
    """
    parse_address(user)
    if db.get(Dataset, dataset_id) is None:
        raise MalformedInputError("Dataset not found")

    stored = (
        db.query(StoredCaptcha)
        .filter(StoredCaptcha.dataset_id == dataset_id)
        .order_by(func.random())
        .limit(settings.captchas_per_request)
        .all()
    )
    if not stored:
        raise MalformedInputError("Dataset has no captchas")

    salt = secrets.token_hex(16)
    captcha_ids = [c.captcha_id for c in stored]
    request_hash = hash_request(captcha_ids, user, salt)

    db.add(
        PendingCaptchaRequest(
            request_hash=request_hash,
            user=user,
            dapp=dapp,
            dataset_id=dataset_id,
            salt=salt,
            captcha_ids=captcha_ids,
            deadline_timestamp=now_ms() + settings.captcha_request_timeout_ms,
            requested_at_block=block_number,
        )
    )
    db.commit()

    captchas = []
    for captcha in stored:
        served = to_captcha(captcha)
        served.salt = salt
        captchas.append(CaptchaWithProof(captcha=served, proof=captcha.proof))

    logger.info("captcha_challenge_served", dataset_id=dataset_id, captcha_count=len(captchas))
    return CaptchaResponseBody(captchas=captchas, request_hash=request_hash)


async def submit_captcha_solution(
    db: Session,
    body: CaptchaSolutionBody,
    chain: ChainQuery | None = None,
) -> CaptchaSolutionResponse:
    """
    Check a solved batch and record its commitment.

    The commitment id is the Merkle root over the hashed solutions in the order
    submitted; each returned proof shows the corresponding solution is a leaf of
    that tree. One wrong captcha disapproves the whole batch.
    """
    pending = db.get(PendingCaptchaRequest, body.request_hash)
    if pending is None or not pending.pending or pending.user != body.user or pending.dapp != body.dapp:
        logger.info("captcha_request_invalid", user=body.user)
        return CaptchaSolutionResponse(captchas=[], verified=False, status=STATUS_INVALID_REQUEST)

    if now_ms() > pending.deadline_timestamp:
        pending.pending = False
        db.commit()
        return CaptchaSolutionResponse(captchas=[], verified=False, status=STATUS_EXPIRED)

    tree = MerkleTree.build([hash_solution(s) for s in body.captchas])
    commitment_id = tree.root.hash

    if db.get(ImageCommitment, commitment_id) is not None:
        pending.pending = False
        db.commit()
        logger.info("captcha_commitment_duplicate", user=body.user, commitment_id=commitment_id)
        return CaptchaSolutionResponse(captchas=[], verified=False, status=STATUS_DUPLICATE_COMMITMENT)

    owner_proven = await check_submission(
        body.mode,
        SubmissionContext(
            user=body.user,
            dapp=body.dapp,
            request_hash=body.request_hash,
            commitment_id=commitment_id,
            signature=body.signature,
            chain=chain,
        ),
    )

    stored = {}
    for captcha in db.query(StoredCaptcha).filter(StoredCaptcha.captcha_id.in_(pending.captcha_ids)):
        solved = to_captcha(captcha, include_solution=True)
        solved.salt = pending.salt
        stored[captcha.captcha_content_id] = solved

    correct = owner_proven and check_solutions(body.captchas, stored)

    pending.pending = False
    db.add(
        ImageCommitment(
            commitment_id=commitment_id,
            user=body.user,
            dapp=body.dapp,
            dataset_id=pending.dataset_id,
            request_hash=pending.request_hash,
            status=STATUS_APPROVED if correct else STATUS_DISAPPROVED,
            requested_at_block=pending.requested_at_block,
        )
    )
    db.commit()

    logger.info(
        "captcha_solution_checked",
        user=body.user,
        mode=body.mode.value,
        commitment_id=commitment_id,
        verified=correct,
    )

    if not owner_proven:
        status = STATUS_INVALID_OWNER
    else:
        status = STATUS_CORRECT if correct else STATUS_INCORRECT
    return CaptchaSolutionResponse(
        captchas=[
            CaptchaIdAndProof(captcha_id=solution.captcha_content_id, proof=tree.proof(index))
            for index, solution in enumerate(body.captchas)
        ],
        verified=correct,
        status=status,
        commitment_id=commitment_id,
    )


def verify_image_token(
    db: Session,
    token: str,
    dapp_user_signature: str,
    max_verified_time: int,
) -> ImageVerificationResponse:
    """Confirm for a dapp backend that the commitment in ``token`` was approved recently. One use only."""
    output = decode_token(token)
    if output.commitment_id is None:
        raise MalformedInputError("Token does not reference an image commitment")

    def rejected(status: str) -> ImageVerificationResponse:
        return ImageVerificationResponse(status=status, verified=False, commitment_id=output.commitment_id)

    if not verify_signature(output.dapp, token, dapp_user_signature):
        return rejected("Invalid dapp signature")

    commitment = db.get(ImageCommitment, output.commitment_id)
    if commitment is None or commitment.user != output.user or commitment.dapp != output.dapp:
        return rejected("Commitment not found")
    if commitment.requested_at_block != output.block_number:
        return rejected("Block number mismatch")
    if commitment.status != STATUS_APPROVED:
        return rejected("Commitment not approved")
    if commitment.server_checked:
        return rejected("Commitment already verified")

    created_ms = int(commitment.created_at.replace(tzinfo=UTC).timestamp() * 1000)
    if now_ms() - created_ms > max_verified_time:
        return rejected("Commitment expired")

    commitment.server_checked = True
    db.commit()
    return ImageVerificationResponse(
        status="Verified",
        verified=True,
        commitment_id=commitment.commitment_id,
        block_number=commitment.requested_at_block,
    )


def cleanup_expired_requests(db: Session) -> int:
    """Delete pending requests past their deadline. Returns count of deleted rows."""
    result = (
        db.query(PendingCaptchaRequest)
        .filter(PendingCaptchaRequest.deadline_timestamp < now_ms())
        .delete()
    )
    db.commit()
    return result
