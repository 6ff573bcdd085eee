"""Tests for served-batch verification and solution checking."""

import pytest

from captcha_provider.core.hashing import hash_solution
from captcha_provider.core.image import (
    check_solutions,
    verify_captcha_challenge,
    verify_captcha_data,
    verify_challenge_content,
)
from captcha_provider.exceptions import MalformedInputError
from captcha_provider.schemas.captcha import CaptchaItem, CaptchaSolution, CaptchaWithProof
from captcha_provider.models.dataset import StoredCaptcha
from captcha_provider.services.dataset_service import load_dataset, to_captcha
from tests.test_utils import png_data_uri, sample_dataset


@pytest.fixture
def loaded(db_session):
    dataset = load_dataset(db_session, sample_dataset(4))
    stored = db_session.query(StoredCaptcha).filter(StoredCaptcha.dataset_id == dataset.dataset_id).all()
    served = [CaptchaWithProof(captcha=to_captcha(c), proof=c.proof) for c in stored]
    return dataset, stored, served


class TestVerifyCaptchaChallenge:
    def test_served_batch_verifies(self, loaded):
        dataset, _, served = loaded
        assert verify_captcha_challenge(dataset.dataset_content_id, served)

    def test_wrong_dataset_root(self, loaded):
        _, _, served = loaded
        assert not verify_challenge_content("00" * 32, served)
        assert not verify_captcha_challenge("00" * 32, served)

    def test_empty_batch(self, loaded):
        dataset, _, _ = loaded
        assert not verify_captcha_challenge(dataset.dataset_content_id, [])

    def test_swapped_image_detected(self, loaded):
        """Replacing pixels while keeping the advertised hash fails the batch."""
        dataset, _, served = loaded
        captcha = served[0].captcha
        original = captcha.items[0]
        captcha.items[0] = CaptchaItem(hash=original.hash, data=png_data_uri((255, 255, 255)), type="image")
        assert not verify_captcha_data(served[0])
        assert not verify_captcha_challenge(dataset.dataset_content_id, served)

    def test_changed_target_detected(self, loaded):
        dataset, _, served = loaded
        served[1].captcha.target = "something else"
        assert not verify_captcha_challenge(dataset.dataset_content_id, served)

    def test_empty_proof_raises(self, loaded):
        _, _, served = loaded
        with pytest.raises(MalformedInputError):
            verify_captcha_data(CaptchaWithProof(captcha=served[0].captcha, proof=[]))


class TestCheckSolutions:
    """One wrong answer disapproves the whole batch."""

    def solutions(self, stored, salt="request-salt"):
        return [
            CaptchaSolution(captcha_content_id=c.captcha_content_id, salt=salt, solution=c.solution)
            for c in stored
        ]

    def expected(self, stored, salt="request-salt"):
        result = {}
        for c in stored:
            captcha = to_captcha(c, include_solution=True)
            captcha.salt = salt
            result[c.captcha_content_id] = captcha
        return result

    def test_all_correct(self, loaded):
        _, stored, _ = loaded
        assert check_solutions(self.solutions(stored), self.expected(stored))

    def test_one_flipped_answer(self, loaded):
        _, stored, _ = loaded
        solutions = self.solutions(stored)
        solutions[2] = CaptchaSolution(
            captcha_content_id=solutions[2].captcha_content_id,
            salt=solutions[2].salt,
            solution=[(solutions[2].solution[0] + 1) % 3],
        )
        assert not check_solutions(solutions, self.expected(stored))

    def test_wrong_salt(self, loaded):
        _, stored, _ = loaded
        assert not check_solutions(self.solutions(stored, salt="other"), self.expected(stored))

    def test_missing_and_duplicate_answers(self, loaded):
        _, stored, _ = loaded
        solutions = self.solutions(stored)
        assert not check_solutions(solutions[:-1], self.expected(stored))
        assert not check_solutions(solutions[:-1] + [solutions[0]], self.expected(stored))

    def test_solution_order_within_captcha_ignored(self):
        first = CaptchaSolution(captcha_content_id="c", salt="s", solution=[2, 0])
        assert hash_solution(first) == hash_solution(
            CaptchaSolution(captcha_content_id="c", salt="s", solution=[0, 2])
        )
