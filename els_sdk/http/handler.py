"""
ELS API Handler
===============
Convenience methods for talking to the ELS API, chiefly the exchange of a
user's email and password for a temporary access key.
"""

import hashlib
from typing import Optional, Protocol, Tuple
from urllib.parse import quote

import httpx
import structlog

from ..config import APIConfig
from ..context import Context
from ..credential import Credential
from ..exceptions import UnexpectedStatusCode

logger = structlog.get_logger(__name__)


def hash_password(password: str) -> str:
    """
    Pre-hash a plaintext password before it is sent to the ELS.

    The ELS never accepts plaintext passwords over the wire. This hash is not
    what the ELS stores; it is hashed again server-side.
    """
    return hashlib.sha256(password.encode()).hexdigest()


class APIUtils(Protocol):
    """Anything able to issue access keys."""

    async def create_credential(
        self,
        ctx: Optional[Context],
        email: str,
        password: str,
        password_prehashed: bool,
        expiry_days: int,
    ) -> Tuple[Credential, int]:
        ...


class APIHandler:
    """
    Client for the ELS API endpoints used to obtain access keys.

    Pass your own ``httpx.AsyncClient`` to control the transport. Otherwise
    one is created on first use and closed by ``aclose()``. The default
    client has no timeout of its own: calls are bounded by their Context.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        config: Optional[APIConfig] = None,
    ):
        self.config = config or APIConfig()
        self.scheme = self.config.scheme
        self.domain = self.config.domain
        self.version = self.config.version
        self.timeout = self.config.timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self):
        await self._get_client()
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=None)
            self._owns_client = True
        return self._client

    async def aclose(self):
        """Close the underlying HTTP client if this handler created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def url_prefix(self) -> str:
        """Return the string to prepend to each relative API url."""
        return f"{self.scheme}://{self.domain}/{self.version}"

    async def create_credential(
        self,
        ctx: Optional[Context],
        email: str,
        password: str,
        password_prehashed: bool = False,
        expiry_days: int = 1,
    ) -> Tuple[Credential, int]:
        """
        Exchange a user's credentials for a new temporary access key.

        Args:
            ctx: Context bounding the call, or None for a default timeout
            email: Email address of an existing ELS user
            password: The user's password
            password_prehashed: True if ``password`` already went through hash_password
            expiry_days: Days until the new key expires

        Returns:
            The access key and the HTTP status code (always 201)

        Raises:
            UnexpectedStatusCode: the ELS did not answer 201; carries the status code
            ContextError: ctx ended before the ELS answered
        """
        if ctx is None:
            ctx = Context.with_timeout(self.timeout)

        if not password_prehashed:
            password = hash_password(password)

        request = httpx.Request(
            "POST",
            f"{self.url_prefix()}/users/{quote(email, safe='')}/accessKeys",
            params={"expires": 1, "numDaysTillExpiry": expiry_days},
        )

        logger.debug("create_credential", email=email, url=str(request.url))

        client = await self._get_client()
        response = await ctx.run(
            client.send(request, auth=httpx.BasicAuth(email, password))
        )

        if response.status_code != httpx.codes.CREATED:
            logger.debug(
                "create_credential_rejected",
                email=email,
                status_code=response.status_code,
            )
            raise UnexpectedStatusCode(response.status_code)

        return Credential.from_json(response.content), response.status_code
