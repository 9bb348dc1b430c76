"""HMAC signature utilities."""

import hmac
import hashlib
from typing import Union

from ..exceptions import UnsupportedAlgorithmError


SUPPORTED_ALGORITHMS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
}


def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def compute_signature(
    payload: Union[str, bytes],
    secret: str,
    algorithm: str = "sha256"
) -> str:
    """
    Compute a webhook signature.

    Args:
        payload: Raw request body
        secret: Shared webhook secret
        algorithm: One of sha1, sha256, sha512

    Returns:
        Signature formatted as "<algorithm>=<hexdigest>"

    Raises:
        UnsupportedAlgorithmError: algorithm is not supported
    """
    name = algorithm.lower()
    digestmod = SUPPORTED_ALGORITHMS.get(name)
    if digestmod is None:
        raise UnsupportedAlgorithmError(f"Unsupported algorithm: {algorithm}")

    digest = hmac.new(_to_bytes(secret), _to_bytes(payload), digestmod).hexdigest()
    return f"{name}={digest}"


def secure_compare(a: str, b: str) -> bool:
    """Constant-time string comparison; empty or unequal-length is False."""
    if not a or not b or len(a) != len(b):
        return False
    return hmac.compare_digest(_to_bytes(a), _to_bytes(b))
