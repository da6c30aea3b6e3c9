"""
ELS SDK
=======
Client for the Elastic Licensing Service (ELS): acquisition of access keys
and ELS-signing of API calls made with them.
"""

__version__ = "0.1.0"

# Configuration
from els_sdk.config import (
    APIConfig,
    DEFAULT_API_DOMAIN,
    DEFAULT_API_SCHEME,
    DEFAULT_API_VERSION,
    REQUIRED_CONTENT_TYPE,
    SIGNING_HORIZON,
)

# Errors
from els_sdk.exceptions import (
    ELSError,
    NoCredentialError,
    NoRequestError,
    InvalidURLError,
    ExpiredCredentialError,
    UnreadableBodyError,
    UnexpectedStatusCode,
    ContextError,
    DeadlineExceeded,
    Cancelled,
)

# Time and cancellation
from els_sdk.clock import TimeProvider, SystemTimeProvider, FixedTimeProvider
from els_sdk.context import Context

# Access keys
from els_sdk.credential import Credential

# Signing
from els_sdk.signing import APISigner, Signer, build_canonical_string, compute_signature

# API calls
from els_sdk.http import APICaller, APIHandler, APIUtils, ELSAPICaller, hash_password

__all__ = [
    # Configuration
    "APIConfig",
    "DEFAULT_API_DOMAIN",
    "DEFAULT_API_SCHEME",
    "DEFAULT_API_VERSION",
    "REQUIRED_CONTENT_TYPE",
    "SIGNING_HORIZON",
    # Errors
    "ELSError",
    "NoCredentialError",
    "NoRequestError",
    "InvalidURLError",
    "ExpiredCredentialError",
    "UnreadableBodyError",
    "UnexpectedStatusCode",
    "ContextError",
    "DeadlineExceeded",
    "Cancelled",
    # Time and cancellation
    "TimeProvider",
    "SystemTimeProvider",
    "FixedTimeProvider",
    "Context",
    # Access keys
    "Credential",
    # Signing
    "APISigner",
    "Signer",
    "build_canonical_string",
    "compute_signature",
    # API calls
    "APICaller",
    "APIHandler",
    "APIUtils",
    "ELSAPICaller",
    "hash_password",
]
