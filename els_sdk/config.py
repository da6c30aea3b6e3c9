"""
ELS API Configuration
=====================
Configuration for reaching the Elastic Licensing Service API.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta

DEFAULT_API_SCHEME = "https"
DEFAULT_API_DOMAIN = "api.elasticlicensing.com"
DEFAULT_API_VERSION = "1.0"
DEFAULT_TIMEOUT_SECONDS = 10.0

# Part of the canonical string whenever a body is signed
REQUIRED_CONTENT_TYPE = "application/json;charset=utf-8"

# A key which expires within this horizon is refused for signing
SIGNING_HORIZON = timedelta(minutes=1)


def _env_timeout() -> float:
    return float(os.environ.get("ELS_API_TIMEOUT", DEFAULT_TIMEOUT_SECONDS))


@dataclass
class APIConfig:
    """Configuration for the ELS API endpoint."""
    scheme: str = field(
        default_factory=lambda: os.environ.get("ELS_API_SCHEME", DEFAULT_API_SCHEME)
    )
    domain: str = field(
        default_factory=lambda: os.environ.get("ELS_API_DOMAIN", DEFAULT_API_DOMAIN)
    )
    version: str = field(
        default_factory=lambda: os.environ.get("ELS_API_VERSION", DEFAULT_API_VERSION)
    )
    timeout: float = field(default_factory=_env_timeout)

    def url_prefix(self) -> str:
        """Return the string prepended to each relative API url."""
        return f"{self.scheme}://{self.domain}/{self.version}"
