"""Tests for signed proof-of-work challenges."""

import pytest
from solders.keypair import Keypair

from captcha_provider.core.pow import (
    PowSolution,
    build_challenge_string,
    issue_challenge,
    meets_difficulty,
    parse_challenge_string,
    pow_hash,
    sign_timestamp,
    solve_challenge,
    verify_solution,
)
from captcha_provider.core.signing import address_of, sign_message, verify_signature
from captcha_provider.exceptions import MalformedInputError

NOW = 1_700_000_000_000
TIMEOUT = 120_000


@pytest.fixture
def provider():
    return Keypair()


@pytest.fixture
def user():
    return Keypair()


@pytest.fixture
def dapp():
    return Keypair()


def solve(challenge, user, dapp, nonce=None):
    return PowSolution(
        challenge=challenge.challenge,
        nonce=nonce if nonce is not None else solve_challenge(challenge.challenge, challenge.difficulty),
        user_timestamp_signature=sign_timestamp(user, challenge.timestamp),
        user=address_of(user),
        dapp=address_of(dapp),
    )


class TestSignatures:
    def test_round_trip(self, user):
        signature = sign_message(user, "hello")
        assert verify_signature(address_of(user), "hello", signature)
        assert not verify_signature(address_of(user), "other", signature)
        assert not verify_signature(address_of(Keypair()), "hello", signature)

    def test_malformed_inputs_raise(self, user):
        signature = sign_message(user, "hello")
        with pytest.raises(MalformedInputError):
            verify_signature("not-an-address", "hello", signature)
        with pytest.raises(MalformedInputError):
            verify_signature(address_of(user), "hello", "abcd")
        with pytest.raises(MalformedInputError):
            verify_signature(address_of(user), "hello", "zz" * 64)


class TestChallengeString:
    def test_round_trip(self):
        challenge = build_challenge_string(123, "alice", "dapp")
        assert challenge == "123___alice___dapp"
        assert parse_challenge_string(challenge) == (123, "alice", "dapp")

    @pytest.mark.parametrize("bad", ["", "123___alice", "x___alice___dapp", "123______dapp"])
    def test_malformed(self, bad):
        with pytest.raises(MalformedInputError):
            parse_challenge_string(bad)


class TestVerifySolution:
    """A difficulty-4 challenge solved by brute force verifies once, and only as issued."""

    def test_valid_solution(self, provider, user, dapp):
        challenge = issue_challenge(provider, address_of(user), address_of(dapp), 4, now=NOW)
        solution = solve(challenge, user, dapp)

        assert pow_hash(solution.nonce, challenge.challenge).startswith("0000")
        result = verify_solution(challenge, solution, address_of(provider), NOW + 1000, TIMEOUT)
        assert result.verified
        assert result.reason is None

    def test_insufficient_work(self, provider, user, dapp):
        challenge = issue_challenge(provider, address_of(user), address_of(dapp), 4, now=NOW)
        nonce = next(n for n in range(100_000) if not meets_difficulty(pow_hash(n, challenge.challenge), 4))
        result = verify_solution(challenge, solve(challenge, user, dapp, nonce), address_of(provider), NOW, TIMEOUT)
        assert not result.verified
        assert result.reason == "insufficient_work"

    def test_expired(self, provider, user, dapp):
        challenge = issue_challenge(provider, address_of(user), address_of(dapp), 2, now=NOW)
        result = verify_solution(
            challenge, solve(challenge, user, dapp), address_of(provider), NOW + TIMEOUT + 1, TIMEOUT
        )
        assert result.reason == "expired"

    def test_timeout_boundary_is_inclusive(self, provider, user, dapp):
        challenge = issue_challenge(provider, address_of(user), address_of(dapp), 2, now=NOW)
        result = verify_solution(challenge, solve(challenge, user, dapp), address_of(provider), NOW + TIMEOUT, TIMEOUT)
        assert result.verified

    def test_signed_by_another_provider(self, provider, user, dapp):
        challenge = issue_challenge(provider, address_of(user), address_of(dapp), 2, now=NOW)
        result = verify_solution(challenge, solve(challenge, user, dapp), address_of(Keypair()), NOW, TIMEOUT)
        assert result.reason == "invalid_provider_signature"

    def test_tampered_difficulty(self, provider, user, dapp):
        challenge = issue_challenge(provider, address_of(user), address_of(dapp), 2, now=NOW)
        solution = solve(challenge, user, dapp)
        easier = challenge.__class__(
            challenge=challenge.challenge,
            difficulty=0,
            timestamp=challenge.timestamp,
            provider_signature=challenge.provider_signature,
        )
        result = verify_solution(easier, solution, address_of(provider), NOW, TIMEOUT)
        assert result.reason == "invalid_provider_signature"

    def test_user_signature_from_someone_else(self, provider, user, dapp):
        challenge = issue_challenge(provider, address_of(user), address_of(dapp), 2, now=NOW)
        solution = solve(challenge, user, dapp)
        forged = PowSolution(
            challenge=solution.challenge,
            nonce=solution.nonce,
            user_timestamp_signature=sign_timestamp(Keypair(), challenge.timestamp),
            user=solution.user,
            dapp=solution.dapp,
        )
        result = verify_solution(challenge, forged, address_of(provider), NOW, TIMEOUT)
        assert result.reason == "invalid_user_signature"

    def test_solution_for_other_dapp(self, provider, user, dapp):
        challenge = issue_challenge(provider, address_of(user), address_of(dapp), 2, now=NOW)
        solution = solve(challenge, user, Keypair())
        result = verify_solution(challenge, solution, address_of(provider), NOW, TIMEOUT)
        assert result.reason == "challenge_mismatch"

    def test_malformed_signature_raises(self, provider, user, dapp):
        challenge = issue_challenge(provider, address_of(user), address_of(dapp), 2, now=NOW)
        solution = solve(challenge, user, dapp)
        broken = PowSolution(
            challenge=solution.challenge,
            nonce=solution.nonce,
            user_timestamp_signature="",
            user=solution.user,
            dapp=solution.dapp,
        )
        with pytest.raises(MalformedInputError):
            verify_solution(challenge, broken, address_of(provider), NOW, TIMEOUT)

    def test_negative_nonce_raises(self, provider, user, dapp):
        challenge = issue_challenge(provider, address_of(user), address_of(dapp), 2, now=NOW)
        with pytest.raises(MalformedInputError):
            verify_solution(challenge, solve(challenge, user, dapp, nonce=-1), address_of(provider), NOW, TIMEOUT)


class TestIssueChallenge:
    def test_rejects_bad_difficulty(self, provider, user, dapp):
        with pytest.raises(MalformedInputError):
            issue_challenge(provider, address_of(user), address_of(dapp), 65)

    def test_rejects_bad_user(self, provider, dapp):
        with pytest.raises(MalformedInputError):
            issue_challenge(provider, "nope", address_of(dapp), 2)

    def test_solver_limit(self):
        with pytest.raises(RuntimeError):
            solve_challenge("anything", 64, limit=10)
