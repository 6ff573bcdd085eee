"""
Hashing primitives shared by issuers, solvers and verifiers.

Every digest in the protocol is lowercase hex SHA-256. Structured values are
hashed as canonical JSON (sorted keys, no whitespace) so that independent
implementations arrive at the same bytes.

Image items are hashed over their decoded pixels, not their file bytes:
the image is decoded with Pillow, EXIF orientation is applied, it is converted
to RGBA and the digest covers ``b"{width}x{height}:RGBA:"`` followed by the raw
pixel buffer. Two lossless encodings of the same picture hash identically.
"""

import base64
import binascii
import hashlib
import io
import json
from collections.abc import Callable, Iterable
from typing import Any

import httpx
from PIL import Image, ImageOps, UnidentifiedImageError

from captcha_provider.exceptions import MalformedInputError
from captcha_provider.schemas.captcha import Captcha, CaptchaItem, CaptchaSolution

ItemLoader = Callable[[str], bytes]

ITEM_FETCH_TIMEOUT_SECONDS = 10.0


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def canonical_json(value: Any) -> bytes:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode()


def hash_json(value: Any) -> str:
    """Hash a JSON-serialisable value in canonical form."""
    return sha256_hex(canonical_json(value))


def fetch_item_content(url: str) -> bytes:
    """Default loader: download an image item over HTTP."""
    try:
        response = httpx.get(url, timeout=ITEM_FETCH_TIMEOUT_SECONDS, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise MalformedInputError(f"Image item could not be fetched: {url}") from e
    return response.content


def _decode_data_uri(data: str) -> bytes:
    header, _, payload = data.partition(",")
    if not header.endswith(";base64"):
        raise MalformedInputError("Only base64 data URIs are supported for image items")
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise MalformedInputError("Invalid base64 payload in image data URI") from e


def load_item_content(item: CaptchaItem, loader: ItemLoader | None = None) -> bytes:
    if item.data.startswith("data:"):
        return _decode_data_uri(item.data)
    return (loader or fetch_item_content)(item.data)


def normalize_image(content: bytes) -> bytes:
    """Reduce image bytes to the canonical byte string that gets hashed."""
    try:
        with Image.open(io.BytesIO(content)) as image:
            image = ImageOps.exif_transpose(image).convert("RGBA")
            width, height = image.size
            return f"{width}x{height}:RGBA:".encode() + image.tobytes()
    except (UnidentifiedImageError, OSError) as e:
        raise MalformedInputError("Image item could not be decoded") from e


def compute_item_hash(
    item: CaptchaItem,
    content: bytes | None = None,
    loader: ItemLoader | None = None,
) -> str:
    """
    Recompute an item's hash from its content.

    Args:
        item: The item; its ``hash`` field is ignored.
        content: Raw image bytes, when the caller already has them.
        loader: Fetches image bytes for non data: references (defaults to HTTP GET).

    Returns:
        Hex SHA-256 digest of the item content
    """
    if item.type == "text":
        return sha256_hex(item.data.encode())
    if item.type == "image":
        raw = content if content is not None else load_item_content(item, loader)
        return sha256_hex(normalize_image(raw))
    raise MalformedInputError(f"Unknown captcha item type: {item.type}")


def hash_captcha(
    captcha: Captcha,
    include_solution: bool = False,
    include_item_hashes: bool = True,
    include_id: bool = False,
) -> str:
    """
    Hash a captcha's canonical fields.

    Items are sorted before hashing so item order never changes the digest.
    With the defaults this yields the ``captchaContentId``; issuing and
    verifying a challenge both use the defaults, while the provider's own
    captcha ids also cover the solution and salt.
    """
    if include_item_hashes:
        items = sorted(item.hash for item in captcha.items)
    else:
        items = sorted(item.data for item in captcha.items)

    payload: dict[str, Any] = {"target": captcha.target, "items": items}
    if include_solution:
        if captcha.solution is None:
            raise MalformedInputError("Captcha has no solution to hash")
        payload["solution"] = sorted(captcha.solution)
        payload["salt"] = captcha.salt
    if include_id:
        if not captcha.captcha_id:
            raise MalformedInputError("Captcha has no captchaId to hash")
        payload["captchaId"] = captcha.captcha_id
    return hash_json(payload)


def hash_solution(solution: CaptchaSolution) -> str:
    return hash_json(
        {
            "captchaContentId": solution.captcha_content_id,
            "salt": solution.salt,
            "solution": sorted(solution.solution),
        }
    )


def hash_request(captcha_ids: Iterable[str], user: str, salt: str) -> str:
    """Bind a pending image request to the captchas served, the user and a salt."""
    return hash_json({"captchaIds": list(captcha_ids), "user": user, "salt": salt})
