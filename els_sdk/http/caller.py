"""
ELS API Caller
==============
Completes, signs and sends API calls to the ELS or to third-party APIs.
"""

from datetime import datetime
from typing import Optional, Protocol

import httpx
import structlog

from ..clock import SystemTimeProvider, TimeProvider
from ..config import APIConfig
from ..context import Context
from ..signing import Signer
from .handler import APIHandler, APIUtils
from .rwlock import RWLock

logger = structlog.get_logger(__name__)


class APICaller(APIUtils, Protocol):
    """The methods used to access the ELS and other APIs."""

    async def do(
        self,
        ctx: Optional[Context],
        request: httpx.Request,
        signer: Optional[Signer] = None,
        first_party: bool = True,
    ) -> httpx.Response:
        ...

    async def get(
        self,
        ctx: Optional[Context],
        url: str,
        signer: Optional[Signer] = None,
        first_party: bool = True,
    ) -> httpx.Response:
        ...

    def last_failure_time(self) -> Optional[datetime]:
        ...


class ELSAPICaller(APIHandler):
    """
    Sends optionally ELS-signed requests.

    Responses are returned whatever their status code; interpreting them is
    up to the caller. Nothing is retried. The time of the most recent failed
    exchange is kept for observability only.

    Example:
        async with ELSAPICaller(timeout=5.0) as caller:
            key, _ = await caller.create_credential(None, email, password)
            response = await caller.get(None, "/users/me", APISigner(key))
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        time_provider: Optional[TimeProvider] = None,
        timeout: Optional[float] = None,
        api_version: str = "",
        config: Optional[APIConfig] = None,
    ):
        super().__init__(client=client, config=config)
        self.time_provider = time_provider or SystemTimeProvider()
        if timeout is not None:
            self.timeout = timeout
        # Use one caller per API version
        if api_version:
            self.version = api_version
        self._lock = RWLock()
        self._last_failure: Optional[datetime] = None

    def last_failure_time(self) -> Optional[datetime]:
        """Return when an API call last failed, or None if none has."""
        with self._lock.read_locked():
            return self._last_failure

    def _record_failure(self, failed_at: datetime) -> None:
        with self._lock.write_locked():
            self._last_failure = failed_at

    def complete_url(self, request: httpx.Request) -> None:
        """Point a relative request at the configured API host and version."""
        api = httpx.URL(f"{self.scheme}://{self.domain}")
        request.url = request.url.copy_with(
            scheme=api.scheme,
            host=api.host,
            port=api.port,
            path=f"/{self.version}{request.url.path}",
        )
        request.headers["Host"] = request.url.netloc.decode("ascii")

    async def do(
        self,
        ctx: Optional[Context],
        request: httpx.Request,
        signer: Optional[Signer] = None,
        first_party: bool = True,
    ) -> httpx.Response:
        """
        Complete the url of the request, sign it and send it.

        Args:
            ctx: Context bounding the call. None means a fresh context timing
                out after the caller's default timeout; a given context is
                used as is.
            request: The request to send
            signer: Signs the request; None to send it unsigned
            first_party: False when calling a third-party API, in which case
                the url is left untouched

        Raises:
            DeadlineExceeded: the context deadline elapsed first
            Cancelled: the context was cancelled first
        """
        if ctx is None:
            ctx = Context.with_timeout(self.timeout)

        if first_party:
            self.complete_url(request)

        if signer is not None:
            # Signing reads the body synchronously
            if isinstance(request.stream, httpx.AsyncByteStream):
                await request.aread()
            try:
                signer.sign(request, self.time_provider.now())
            except Exception as e:
                logger.debug("api_call_sign_failed", error=str(e))
                raise

        logger.debug("api_call", method=request.method, url=str(request.url))

        client = await self._get_client()
        try:
            response = await ctx.run(client.send(request))
        except Exception as e:
            failed_at = self.time_provider.now()
            self._record_failure(failed_at)
            logger.debug("api_call_failed", at=failed_at.isoformat(), error=repr(e))
            raise

        logger.debug("api_call_response", status_code=response.status_code)
        return response

    async def get(
        self,
        ctx: Optional[Context],
        url: str,
        signer: Optional[Signer] = None,
        first_party: bool = True,
    ) -> httpx.Response:
        """Send a GET request for ``url``; see do()."""
        return await self.do(ctx, httpx.Request("GET", url), signer, first_party)
