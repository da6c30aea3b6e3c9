import asyncio
import logging
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import structlog

from els_sdk.clock import FixedTimeProvider
from els_sdk.credential import Credential


@pytest.fixture
def now():
    return datetime(2015, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def credential(now):
    return Credential(id="AK", secret="SAK", expiry=now + timedelta(hours=1), owner="example@test.com")


@pytest.fixture
def time_provider(now):
    return FixedTimeProvider(now)


class SimServer:
    """
    Simulated remote service answering every request with a fixed reply
    after an optional delay, and remembering what it received.
    """

    def __init__(self, status_code=200, body='{"some":"data"}', delay=0.0, error=None):
        self.status_code = status_code
        self.body = body
        self.delay = delay
        self.error = error
        self.requests = []
        self.bodies = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.bodies.append(await request.aread())
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return httpx.Response(
            self.status_code,
            content=self.body.encode(),
            headers={"Content-Type": "application/json"},
        )

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def reset_logging():
    yield
    structlog.reset_defaults()
    sdk_logger = logging.getLogger("els_sdk")
    sdk_logger.handlers.clear()
    sdk_logger.propagate = True
    sdk_logger.setLevel(logging.NOTSET)
