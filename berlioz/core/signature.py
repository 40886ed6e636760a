"""
Slack request signature verification.

Slack signs each request with HMAC-SHA256 over "v0:<timestamp>:<raw body>"
using the app's signing secret and sends "v0=<hex digest>" in X-Slack-Signature.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from typing import Optional, Union

SIGNATURE_VERSION = "v0"
SIGNATURE_HEADER = "X-Slack-Signature"
TIMESTAMP_HEADER = "X-Slack-Request-Timestamp"
DEFAULT_MAX_AGE_SECONDS = 300


def compute_signature(
    timestamp: str, raw_body: Union[str, bytes], signing_secret: str
) -> str:
    """Return the "v0=<hex>" signature Slack would send for this request."""
    body = raw_body.decode("utf-8") if isinstance(raw_body, bytes) else raw_body
    base = f"{SIGNATURE_VERSION}:{timestamp}:{body}".encode("utf-8")
    digest = hmac.new(signing_secret.encode("utf-8"), base, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_signature(
    signature_header: Optional[str],
    timestamp_header: Optional[str],
    raw_body: Union[str, bytes, None],
    signing_secret: Optional[str],
    now: Optional[float] = None,
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
) -> bool:
    """
    Check a Slack signature in constant time.

    Returns False on any malformed input instead of raising. Timestamps more
    than max_age_seconds away from now are rejected; 0 disables that check.
    """
    if not signature_header or not timestamp_header or not signing_secret:
        return False
    if not isinstance(signature_header, str) or not isinstance(timestamp_header, str):
        return False
    if not isinstance(raw_body, (str, bytes)):
        return False
    try:
        request_ts = int(timestamp_header)
    except ValueError:
        return False
    if max_age_seconds > 0:
        current = time.time() if now is None else now
        if abs(current - request_ts) > max_age_seconds:
            return False
    try:
        expected = compute_signature(timestamp_header, raw_body, signing_secret)
    except UnicodeDecodeError:
        return False
    return hmac.compare_digest(
        expected.encode("utf-8"), signature_header.encode("utf-8")
    )
