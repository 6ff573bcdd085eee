"""
Image captcha verification.

Client side: confirm that a served batch of CaptchaWithProof really comes from
the dataset whose content root the chain published, recomputing every hash
instead of trusting the ones on the wire.

Provider side: compare a submitted batch of solutions against the stored ones.

Any single failing captcha fails the whole batch.
"""

from collections.abc import Mapping, Sequence

import structlog

from captcha_provider.core import merkle
from captcha_provider.core.hashing import ItemLoader, compute_item_hash, hash_captcha, hash_solution
from captcha_provider.exceptions import MalformedInputError
from captcha_provider.schemas.captcha import Captcha, CaptchaSolution, CaptchaWithProof

logger = structlog.get_logger()


def verify_challenge_content(dataset_id_content: str, captchas: Sequence[CaptchaWithProof]) -> bool:
    """Every proof must terminate at the dataset's published content root."""
    if not captchas:
        return False
    for captcha_with_proof in captchas:
        if merkle.proof_root(captcha_with_proof.proof) != dataset_id_content:
            return False
    return True


def verify_captcha_data(captcha_with_proof: CaptchaWithProof, loader: ItemLoader | None = None) -> bool:
    """
    Recompute item hashes and the content id of a served captcha.

    Checks, in order:
    - every item hash matches the hash recomputed from the item content
    - the content id recomputed from the items matches ``captchaContentId``
    - the content id is a leaf in the first layer of the proof
    """
    captcha = captcha_with_proof.captcha
    proof = captcha_with_proof.proof
    if not proof:
        raise MalformedInputError("Captcha proof is empty")

    for item in captcha.items:
        if compute_item_hash(item, loader=loader) != item.hash:
            logger.info("captcha_item_hash_mismatch", captcha_content_id=captcha.captcha_content_id)
            return False

    content_id = hash_captcha(captcha)
    if content_id != captcha.captcha_content_id:
        return False

    return content_id in proof[0]


def verify_proof(leaf: str, proof: merkle.Proof) -> bool:
    """Check inclusion of ``leaf`` against the root held in the proof's final layer."""
    return merkle.verify_proof(leaf, proof, merkle.proof_root(proof))


def verify_captcha_challenge(
    dataset_id_content: str,
    captchas: Sequence[CaptchaWithProof],
    loader: ItemLoader | None = None,
) -> bool:
    """Verify a whole served batch; one bad captcha fails all of them."""
    if not verify_challenge_content(dataset_id_content, captchas):
        return False
    for captcha_with_proof in captchas:
        if not verify_captcha_data(captcha_with_proof, loader=loader):
            return False
        if not verify_proof(captcha_with_proof.captcha.captcha_content_id, captcha_with_proof.proof):
            return False
    return True


def check_solutions(submitted: Sequence[CaptchaSolution], stored: Mapping[str, Captcha]) -> bool:
    """
    Compare submitted solutions with the stored solved captchas of a request.

    Args:
        submitted: Solutions in submission order
        stored: Solved captchas served with the request, keyed by content id

    Returns:
        True only if every served captcha is answered exactly once and correctly
    """
    if len(submitted) != len(stored):
        return False
    seen: set[str] = set()
    for solution in submitted:
        captcha = stored.get(solution.captcha_content_id)
        if captcha is None or solution.captcha_content_id in seen:
            return False
        seen.add(solution.captcha_content_id)
        if captcha.solution is None:
            raise MalformedInputError(f"Stored captcha {captcha.captcha_content_id} has no solution")
        expected = CaptchaSolution(
            captcha_content_id=solution.captcha_content_id,
            salt=captcha.salt,
            solution=captcha.solution,
        )
        if hash_solution(solution) != hash_solution(expected):
            return False
    return True
