"""Tests for procaptcha token encoding."""

import pytest

from captcha_provider.core.token import ProcaptchaOutput, decode_token, encode_token
from captcha_provider.exceptions import MalformedInputError


class TestToken:
    def test_round_trip_image(self):
        output = ProcaptchaOutput(
            user="u", dapp="d", provider_url="http://p", block_number=7, commitment_id="ab" * 32
        )
        decoded = decode_token(encode_token(output))
        assert decoded == output
        assert not decoded.is_pow

    def test_pow_token(self):
        output = ProcaptchaOutput(
            user="u", dapp="d", provider_url="http://p", block_number=7, challenge="1___u___d", nonce=5, timestamp=1
        )
        assert decode_token(encode_token(output)).is_pow

    def test_encoding_is_canonical_camel_case(self):
        output = ProcaptchaOutput(user="u", dapp="d", provider_url="p", block_number=1, commitment_id="c")
        assert bytes.fromhex(encode_token(output)) == (
            b'{"blockNumber":1,"commitmentId":"c","dapp":"d","providerUrl":"p","user":"u"}'
        )

    @pytest.mark.parametrize(
        "token",
        [
            "zz",
            "[]".encode().hex(),
            '{"user":"u"}'.encode().hex(),
            '{"user":"u","dapp":"d","providerUrl":"p","blockNumber":1}'.encode().hex(),
        ],
    )
    def test_malformed(self, token):
        with pytest.raises(MalformedInputError):
            decode_token(token)
