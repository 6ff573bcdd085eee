"""Account signatures: base58 ed25519 addresses, hex-encoded signatures."""

import binascii

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from captcha_provider.exceptions import MalformedInputError

SIGNATURE_HEX_LENGTH = 128


def _as_bytes(message: str | bytes) -> bytes:
    return message.encode() if isinstance(message, str) else message


def parse_address(address: str) -> Pubkey:
    try:
        return Pubkey.from_string(address)
    except ValueError as e:
        raise MalformedInputError(f"Invalid account address: {address!r}") from e


def parse_signature(signature_hex: str) -> Signature:
    value = signature_hex.removeprefix("0x")
    if len(value) != SIGNATURE_HEX_LENGTH:
        raise MalformedInputError("Signature must be 64 bytes of hex")
    try:
        return Signature.from_bytes(bytes.fromhex(value))
    except (ValueError, binascii.Error) as e:
        raise MalformedInputError("Signature is not valid hex") from e


def sign_message(keypair: Keypair, message: str | bytes) -> str:
    return bytes(keypair.sign_message(_as_bytes(message))).hex()


def verify_signature(address: str, message: str | bytes, signature_hex: str) -> bool:
    """
    Verify ``signature_hex`` over ``message`` by the account ``address``.

    A well-formed signature by the wrong key (or over other bytes) returns
    False; an address or signature that cannot be parsed raises
    MalformedInputError.
    """
    pubkey = parse_address(address)
    signature = parse_signature(signature_hex)
    return signature.verify(pubkey, _as_bytes(message))


def address_of(keypair: Keypair) -> str:
    return str(keypair.pubkey())
