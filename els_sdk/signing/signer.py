"""
Request Signer
==============
Turns an httpx.Request into an ELS-signed request.

ELS API calls must be ELS-signed or they are rejected outright. Note that a
signed request may still be refused if the user who owns the access key is
not authorised to make it.
"""

from datetime import datetime
from typing import Optional, Protocol

import httpx
import structlog

from ..config import DEFAULT_API_VERSION, REQUIRED_CONTENT_TYPE, SIGNING_HORIZON
from ..credential import Credential
from ..exceptions import (
    ExpiredCredentialError,
    InvalidURLError,
    NoCredentialError,
    NoRequestError,
    UnreadableBodyError,
)
from .signature import (
    DATE_HEADER,
    authorization_header,
    build_canonical_string,
    compute_signature,
    format_timestamp,
    hash_body,
)

logger = structlog.get_logger(__name__)


def _buffer_body(request: httpx.Request) -> bytes:
    try:
        return request.content
    except httpx.RequestNotRead:
        pass
    # Async-only streams must be buffered with aread() by the caller
    if not isinstance(request.stream, httpx.SyncByteStream):
        raise UnreadableBodyError()
    return request.read()


class Signer(Protocol):
    """Anything able to ELS-sign a request."""

    def sign(self, request: Optional[httpx.Request], now: datetime) -> None:
        ...


class APISigner:
    """
    Signs requests with a single access key.

    It is assumed that a request is sent immediately after being signed.
    """

    def __init__(self, credential: Optional[Credential], version: str = DEFAULT_API_VERSION):
        if credential is None:
            raise NoCredentialError()
        self.credential = credential
        self.version = version

    def __repr__(self) -> str:
        return f"APISigner(key_id={self.credential.id!r}, version={self.version!r})"

    def sign(self, request: Optional[httpx.Request], now: datetime) -> None:
        """
        Add the Authorization and date headers to ``request``.

        Raises:
            NoRequestError: request is None
            InvalidURLError: the path does not begin with the API version
            ExpiredCredentialError: the key expires within SIGNING_HORIZON of now
            UnreadableBodyError: the body is an async stream that was never read
        """
        if request is None:
            raise NoRequestError()

        # Guards against signing a url that was never completed
        if not request.url.path.startswith(f"/{self.version}/"):
            raise InvalidURLError()

        if not self.credential.valid_until(now, SIGNING_HORIZON):
            raise ExpiredCredentialError()

        timestamp = format_timestamp(now)

        body = _buffer_body(request)
        if body:
            body_hash = hash_body(body)
            content_type = REQUIRED_CONTENT_TYPE
            # The body was consumed for hashing; hand the request a fresh copy
            request.stream = httpx.ByteStream(body)
            request.headers.pop("Transfer-Encoding", None)
            request.headers["Content-Length"] = str(len(body))
        else:
            body_hash = ""
            content_type = ""

        canonical = build_canonical_string(
            request.method, body_hash, content_type, timestamp, request.url.path
        )
        signature = compute_signature(self.credential.secret.get_secret_value(), canonical)

        request.headers["Authorization"] = authorization_header(self.credential.id, signature)
        request.headers[DATE_HEADER] = timestamp
        if body:
            request.headers["Content-Type"] = REQUIRED_CONTENT_TYPE

        logger.debug(
            "sign_request",
            key_id=self.credential.id,
            fingerprint=canonical,
            timestamp=timestamp,
        )
