"""Tests for the PoW service functions."""

from datetime import timedelta

from solders.keypair import Keypair

from captcha_provider.core.pow import meets_difficulty, pow_hash, sign_timestamp, solve_challenge
from captcha_provider.core.signing import address_of, sign_message
from captcha_provider.core.token import ProcaptchaOutput, encode_token
from captcha_provider.models.challenge import PowChallengeRecord
from captcha_provider.schemas.challenge import PowSolutionBody
from captcha_provider.services.pow_service import (
    cleanup_expired_challenges,
    generate_challenge,
    verify_pow_solution,
    verify_pow_token,
)
from tests.test_utils import utcnow


def solution_body(challenge, user: Keypair, dapp: str, /, **overrides) -> PowSolutionBody:
    fields = {
        "challenge": challenge.challenge,
        "difficulty": challenge.difficulty,
        "timestamp": challenge.timestamp,
        "signature": {
            "provider": {"challenge": challenge.provider_signature},
            "user": {"timestamp": sign_timestamp(user, challenge.timestamp)},
        },
        "nonce": solve_challenge(challenge.challenge, challenge.difficulty),
        "user": address_of(user),
        "dapp": dapp,
    }
    fields.update(overrides)
    return PowSolutionBody.model_validate(fields)


def pow_token(challenge, user: Keypair, dapp: str) -> str:
    return encode_token(
        ProcaptchaOutput(
            user=address_of(user),
            dapp=dapp,
            provider_url="http://localhost:9229",
            block_number=1,
            challenge=challenge.challenge,
            nonce=0,
            timestamp=challenge.timestamp,
        )
    )


class TestVerifyPowSolution:
    def test_solution_is_single_use(self, db_session, user_keypair, dapp_keypair):
        dapp = address_of(dapp_keypair)
        challenge = generate_challenge(db_session, address_of(user_keypair), dapp)
        body = solution_body(challenge, user_keypair, dapp)

        assert verify_pow_solution(db_session, body) is True
        assert verify_pow_solution(db_session, body) is False

    def test_unknown_challenge(self, db_session, user_keypair, dapp_keypair):
        dapp = address_of(dapp_keypair)
        challenge = generate_challenge(db_session, address_of(user_keypair), dapp)
        body = solution_body(challenge, user_keypair, dapp, challenge=challenge.challenge + "x")
        assert verify_pow_solution(db_session, body) is False

    def test_wrong_nonce_marks_challenge_checked(self, db_session, user_keypair, dapp_keypair):
        dapp = address_of(dapp_keypair)
        challenge = generate_challenge(db_session, address_of(user_keypair), dapp)
        good = solution_body(challenge, user_keypair, dapp)
        wrong = next(
            n for n in range(1000) if not meets_difficulty(pow_hash(n, challenge.challenge), challenge.difficulty)
        )
        bad = solution_body(challenge, user_keypair, dapp, nonce=wrong)

        assert verify_pow_solution(db_session, bad) is False
        assert verify_pow_solution(db_session, good) is False


class TestVerifyPowToken:
    def test_dapp_confirms_once(self, db_session, user_keypair, dapp_keypair):
        dapp = address_of(dapp_keypair)
        challenge = generate_challenge(db_session, address_of(user_keypair), dapp)
        verify_pow_solution(db_session, solution_body(challenge, user_keypair, dapp))

        token = pow_token(challenge, user_keypair, dapp)
        signature = sign_message(dapp_keypair, token)
        assert verify_pow_token(db_session, token, signature, 60_000) == ("Verified", True)
        assert verify_pow_token(db_session, token, signature, 60_000) == ("Challenge already verified", False)

    def test_unsolved_challenge(self, db_session, user_keypair, dapp_keypair):
        dapp = address_of(dapp_keypair)
        challenge = generate_challenge(db_session, address_of(user_keypair), dapp)
        token = pow_token(challenge, user_keypair, dapp)
        assert verify_pow_token(db_session, token, sign_message(dapp_keypair, token), 60_000) == (
            "Challenge not solved",
            False,
        )

    def test_signature_from_other_dapp(self, db_session, user_keypair, dapp_keypair):
        dapp = address_of(dapp_keypair)
        challenge = generate_challenge(db_session, address_of(user_keypair), dapp)
        token = pow_token(challenge, user_keypair, dapp)
        status, verified = verify_pow_token(db_session, token, sign_message(Keypair(), token), 60_000)
        assert status == "Invalid dapp signature"
        assert not verified

    def test_expired(self, db_session, user_keypair, dapp_keypair):
        dapp = address_of(dapp_keypair)
        challenge = generate_challenge(db_session, address_of(user_keypair), dapp)
        verify_pow_solution(db_session, solution_body(challenge, user_keypair, dapp))
        record = db_session.get(PowChallengeRecord, challenge.challenge)
        record.timestamp -= 10_000
        db_session.commit()

        token = pow_token(challenge, user_keypair, dapp)
        status, _ = verify_pow_token(db_session, token, sign_message(dapp_keypair, token), 5_000)
        assert status == "Challenge expired"


class TestCleanupExpiredChallenges:
    """Tests for the cleanup_expired_challenges function."""

    def test_cleanup_mixed_challenges(self, db_session, user_keypair, dapp_keypair):
        """Only challenges older than the TTL are deleted."""
        dapp = address_of(dapp_keypair)
        fresh = generate_challenge(db_session, address_of(user_keypair), dapp)
        stale = generate_challenge(db_session, address_of(Keypair()), dapp)
        db_session.get(PowChallengeRecord, stale.challenge).created_at = utcnow() - timedelta(days=1)
        db_session.commit()

        assert cleanup_expired_challenges(db_session) == 1
        assert db_session.get(PowChallengeRecord, fresh.challenge) is not None
        assert db_session.get(PowChallengeRecord, stale.challenge) is None
