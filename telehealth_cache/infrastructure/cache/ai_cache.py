"""
Content-addressed keys for AI results.

The key is derived from a SHA-256 digest of the request content, so the same
image (and the same answers) map to the same cache entry whichever user sends
them and whenever. Re-encoded images that are not bit-identical are misses.
"""

import base64
import binascii
import hashlib

from telehealth_cache.core.config.constants import SECONDARY_DIGEST_LENGTH
from telehealth_cache.infrastructure.cache.keys import CacheKeys

DETECT_DISEASE_PURPOSE = "detect-disease"
FINAL_EVALUATION_PURPOSE = "final-eval"
TEXT_DIGEST_PREFIX = "text:"


def hash_bytes(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def hash_text(text: str) -> str:
    return hash_bytes(text.encode("utf-8"))


def hash_image_bytes(image: bytes) -> str:
    """Hex digest of raw image bytes."""
    return hash_bytes(image)


def strip_data_uri(data_uri: str) -> str:
    """Drop the ``data:<mime>;base64,`` envelope, if there is one."""
    if data_uri.startswith("data:") and "," in data_uri:
        return data_uri.split(",", 1)[1]
    return data_uri


def hash_image_data_uri(data_uri: str) -> str:
    """
    Hex digest of the image carried by a data URI.

    The base64 body is decoded and the image bytes are hashed, so a data URI
    and the raw bytes of the same image produce the same digest regardless of
    the declared MIME type. Whitespace inside the body (line-wrapped base64) is
    ignored. A body that is not valid base64 is hashed as text under a separate
    prefix so it never shares a digest with decoded image bytes.
    """
    body = "".join(strip_data_uri(data_uri).split())
    try:
        image = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError):
        return hash_text(TEXT_DIGEST_PREFIX + body)
    return hash_image_bytes(image)


def detect_disease_cache_key(image_hash: str) -> str:
    """``ai:detect-disease:<sha256>``"""
    return CacheKeys.ai_result(DETECT_DISEASE_PURPOSE, image_hash)


def final_evaluation_cache_key(image_hash: str, user_answers: str) -> str:
    """``ai:final-eval:<sha256>:<first 16 hex chars of sha256(answers)>``"""
    answers_digest = hash_text(user_answers)[:SECONDARY_DIGEST_LENGTH]
    return CacheKeys.ai_result(FINAL_EVALUATION_PURPOSE, image_hash, answers_digest)


def content_cache_key(purpose: str, primary: str, *secondary: str) -> str:
    """
    Generic content-addressed key for any AI purpose.

    The primary input is hashed in full; each secondary input contributes a
    truncated digest.
    """
    return CacheKeys.ai_result(
        purpose,
        hash_text(primary),
        *(hash_text(item)[:SECONDARY_DIGEST_LENGTH] for item in secondary),
    )


def truncate_data_uri(data_uri: str, max_length: int = 50) -> str:
    """Shorten a data URI for log output."""
    if len(data_uri) <= max_length:
        return data_uri
    return f"{data_uri[:max_length]}... ({len(data_uri)} chars total)"
