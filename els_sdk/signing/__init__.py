"""
ELS Request Signing
===================
HMAC signing of outbound ELS API requests.
"""

from .signature import (
    AUTH_SCHEME,
    DATE_HEADER,
    SIGNATURE_ALGORITHM,
    authorization_header,
    build_canonical_string,
    compute_signature,
    format_timestamp,
    hash_body,
)
from .signer import APISigner, Signer

__all__ = [
    # Signature
    "AUTH_SCHEME",
    "DATE_HEADER",
    "SIGNATURE_ALGORITHM",
    "authorization_header",
    "build_canonical_string",
    "compute_signature",
    "format_timestamp",
    "hash_body",
    # Signer
    "APISigner",
    "Signer",
]
