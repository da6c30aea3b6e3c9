"""
Signature Functions
===================
Canonical-string construction and HMAC computation for ELS-signed requests.
"""

import base64
import hashlib
import hmac
from datetime import datetime, timezone

AUTH_SCHEME = "ELS"
DATE_HEADER = "X-Els-Date"
SIGNATURE_ALGORITHM = "sha256"


def hash_body(body: bytes) -> str:
    """
    Compute the MD5 digest of a request body.

    Args:
        body: Raw request body bytes

    Returns:
        Hex-encoded MD5 digest
    """
    return hashlib.md5(body).hexdigest()


def format_timestamp(now: datetime) -> str:
    """Render ``now`` as second-precision RFC3339 in UTC, e.g. 2015-01-01T00:00:00Z."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_canonical_string(
    method: str,
    body_hash: str,
    content_type: str,
    timestamp: str,
    path: str,
) -> str:
    """
    Build the string that is HMAC'd to sign a request.

    The ELS recomputes the same string from the request it receives, so the
    field order and separators must not change. ``body_hash`` and
    ``content_type`` are empty when the request has no body.
    """
    return f"{method}\n{body_hash}\n{content_type}\n{timestamp}\n{path}"


def compute_signature(secret: str, canonical: str) -> str:
    """
    Compute the HMAC-SHA256 signature of a canonical string.

    Args:
        secret: Secret part of the access key
        canonical: Output of build_canonical_string

    Returns:
        Base64 (standard alphabet) encoded signature
    """
    digest = hmac.new(
        secret.encode(),
        canonical.encode(),
        digestmod=SIGNATURE_ALGORITHM,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def authorization_header(key_id: str, signature: str) -> str:
    return f"{AUTH_SCHEME} {key_id}:{signature}"
