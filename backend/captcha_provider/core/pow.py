"""
Signed proof-of-work challenges.

The challenge string is ``"{timestamp}___{user}___{dapp}"`` (timestamp in
Unix milliseconds). A nonce solves a challenge of difficulty ``d`` when the
hex SHA-256 of ``f"{nonce}{challenge}"`` starts with ``d`` zeros.

The Provider signs the canonical JSON of ``{challenge, difficulty, timestamp}``
so none of the three can be altered after issuance; the user signs the decimal
timestamp string to show they control the account named in the challenge.
Verification checks a single nonce and never searches.
"""

import hashlib
import time
from dataclasses import dataclass
from itertools import count

from solders.keypair import Keypair

from captcha_provider.core.hashing import canonical_json
from captcha_provider.core.signing import parse_address, sign_message, verify_signature
from captcha_provider.exceptions import MalformedInputError

CHALLENGE_SEPARATOR = "___"
MAX_DIFFICULTY = 64


@dataclass(frozen=True)
class PowChallenge:
    challenge: str
    difficulty: int
    timestamp: int
    provider_signature: str


@dataclass(frozen=True)
class PowSolution:
    challenge: str
    nonce: int
    user_timestamp_signature: str
    user: str
    dapp: str


@dataclass(frozen=True)
class PowVerification:
    verified: bool
    reason: str | None = None


def now_ms() -> int:
    return int(time.time() * 1000)


def build_challenge_string(timestamp: int, user: str, dapp: str) -> str:
    return CHALLENGE_SEPARATOR.join([str(timestamp), user, dapp])


def parse_challenge_string(challenge: str) -> tuple[int, str, str]:
    parts = challenge.split(CHALLENGE_SEPARATOR)
    if len(parts) != 3 or not all(parts):
        raise MalformedInputError("Challenge must be '<timestamp>___<user>___<dapp>'")
    timestamp, user, dapp = parts
    if not timestamp.isdigit():
        raise MalformedInputError("Challenge timestamp must be an integer")
    return int(timestamp), user, dapp


def provider_message(challenge: str, difficulty: int, timestamp: int) -> bytes:
    return canonical_json({"challenge": challenge, "difficulty": difficulty, "timestamp": timestamp})


def pow_hash(nonce: int, challenge: str) -> str:
    return hashlib.sha256(f"{nonce}{challenge}".encode()).hexdigest()


def meets_difficulty(digest: str, difficulty: int) -> bool:
    return digest.startswith("0" * difficulty)


def _check_difficulty(difficulty: int) -> None:
    if isinstance(difficulty, bool) or not isinstance(difficulty, int):
        raise MalformedInputError("Difficulty must be an integer")
    if difficulty < 0 or difficulty > MAX_DIFFICULTY:
        raise MalformedInputError(f"Difficulty must be between 0 and {MAX_DIFFICULTY}")


def issue_challenge(
    keypair: Keypair,
    user: str,
    dapp: str,
    difficulty: int,
    now: int | None = None,
) -> PowChallenge:
    """Create a challenge for (user, dapp) signed by the Provider's keypair."""
    _check_difficulty(difficulty)
    parse_address(user)
    timestamp = now if now is not None else now_ms()
    challenge = build_challenge_string(timestamp, user, dapp)
    signature = sign_message(keypair, provider_message(challenge, difficulty, timestamp))
    return PowChallenge(
        challenge=challenge,
        difficulty=difficulty,
        timestamp=timestamp,
        provider_signature=signature,
    )


def verify_solution(
    challenge: PowChallenge,
    solution: PowSolution,
    provider_address: str,
    now: int,
    verified_timeout: int,
) -> PowVerification:
    """
    Verify a submitted nonce against an issued challenge.

    Args:
        challenge: The challenge as issued (challenge string, difficulty,
            timestamp and provider signature)
        solution: The solver's nonce and timestamp signature
        provider_address: Address whose key signed the challenge
        now: Current time in Unix milliseconds
        verified_timeout: Maximum age of the challenge in milliseconds

    Returns:
        PowVerification; ``verified`` is False with a reason for any failed check

    Raises:
        MalformedInputError: when fields are missing or cannot be parsed
    """
    _check_difficulty(challenge.difficulty)
    if not solution.user_timestamp_signature or not challenge.provider_signature:
        raise MalformedInputError("Both provider and user signatures are required")
    if isinstance(solution.nonce, bool) or not isinstance(solution.nonce, int) or solution.nonce < 0:
        raise MalformedInputError("Nonce must be a non-negative integer")
    if verified_timeout < 0:
        raise MalformedInputError("verifiedTimeout must be non-negative")

    timestamp, user, dapp = parse_challenge_string(challenge.challenge)
    if (
        solution.challenge != challenge.challenge
        or timestamp != challenge.timestamp
        or user != solution.user
        or dapp != solution.dapp
    ):
        return PowVerification(False, "challenge_mismatch")

    if not meets_difficulty(pow_hash(solution.nonce, challenge.challenge), challenge.difficulty):
        return PowVerification(False, "insufficient_work")

    if now - challenge.timestamp > verified_timeout:
        return PowVerification(False, "expired")

    message = provider_message(challenge.challenge, challenge.difficulty, challenge.timestamp)
    if not verify_signature(provider_address, message, challenge.provider_signature):
        return PowVerification(False, "invalid_provider_signature")

    if not verify_signature(user, str(challenge.timestamp), solution.user_timestamp_signature):
        return PowVerification(False, "invalid_user_signature")

    return PowVerification(True)


def solve_challenge(challenge: str, difficulty: int, start: int = 0, limit: int | None = None) -> int:
    """Search for a nonce (solver side). Raises RuntimeError if ``limit`` is exhausted."""
    _check_difficulty(difficulty)
    for nonce in count(start):
        if limit is not None and nonce - start >= limit:
            break
        if meets_difficulty(pow_hash(nonce, challenge), difficulty):
            return nonce
    raise RuntimeError("Failed to solve PoW within iteration limit")


def sign_timestamp(keypair: Keypair, timestamp: int) -> str:
    """User-side acknowledgement of a challenge's timestamp."""
    return sign_message(keypair, str(timestamp))
