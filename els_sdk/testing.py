"""
Test Doubles
============
Deterministic stand-ins for the signer and the API caller.

Usage:
    from els_sdk.testing import MockAPICaller, APICall, http_response

    caller = MockAPICaller()
    caller.add_expected_call("get", APICall(response=http_response(200, '{"ok":true}')))

    await code_under_test(caller)

    assert caller.all_calls_made()
    assert caller.get_call(0).url == "/licences"
"""

import asyncio
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

import httpx

from .context import Context
from .credential import Credential
from .signing import DATE_HEADER, Signer, format_timestamp


def http_response(status_code: int, content: str = "") -> httpx.Response:
    """Build a response with the given status code and body."""
    return httpx.Response(status_code, content=content.encode())


class StubSigner:
    """Signer that adds fixed headers and remembers what it signed."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.last_request: Optional[httpx.Request] = None
        self.last_signed: Optional[datetime] = None

    def sign(self, request: Optional[httpx.Request], now: datetime) -> None:
        self.last_request = request
        self.last_signed = now
        if request is not None:
            request.headers["Authorization"] = "some auth"
            request.headers[DATE_HEADER] = format_timestamp(now)
        if self.error is not None:
            raise self.error


@dataclass
class APICall:
    """
    One expected call on a MockAPICaller.

    The reply fields are configured before the test runs; the argument
    fields are filled in when the call is made. Set ``error`` to
    DeadlineExceeded() to simulate a timeout.
    """
    # Reply
    response: Optional[httpx.Response] = None
    credential: Optional[Credential] = None
    status_code: int = 0
    error: Optional[Exception] = None
    delay: float = 0.0

    # Arguments
    ctx: Optional[Context] = None
    email: str = ""
    password: str = ""
    password_prehashed: bool = False
    expiry_days: int = 0
    request: Optional[httpx.Request] = None
    url: str = ""
    signer: Optional[Signer] = None
    first_party: bool = False

    call_made: bool = False
    fn: str = field(default="", repr=False)


class MockAPICaller:
    """
    Records a chain of API calls and replays a scripted reply for each.

    Calls must arrive in the order they were added. A call to the wrong
    method, or more calls than were added, raises AssertionError.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.calls: List[APICall] = []
        self.calls_made = 0
        self.last_timeout: Optional[datetime] = None

    def add_expected_call(self, fn: str, call: APICall) -> int:
        """Expect a call to method ``fn``. Returns the number of expected calls."""
        with self._lock:
            call.fn = fn
            self.calls.append(call)
            return len(self.calls)

    def get_call(self, i: int) -> APICall:
        with self._lock:
            if i >= len(self.calls):
                raise AssertionError(f"Call {i} does not exist")
            return self.calls[i]

    def all_calls_made(self) -> bool:
        with self._lock:
            return self.calls_made == len(self.calls)

    def num_calls_made(self) -> int:
        with self._lock:
            return self.calls_made

    def last_failure_time(self) -> Optional[datetime]:
        return self.last_timeout

    def _next_call(self, expected_fn: str) -> APICall:
        with self._lock:
            if len(self.calls) <= self.calls_made:
                raise AssertionError(
                    f"MockAPICaller: invoked too many times (configured calls = {len(self.calls)})"
                )
            call = self.calls[self.calls_made]
            if call.fn != expected_fn:
                raise AssertionError(
                    f"MockAPICaller: call #{self.calls_made + 1}: expected {call.fn}, was actually {expected_fn}"
                )
            call.call_made = True
            self.calls_made += 1
            return call

    async def create_credential(
        self,
        ctx: Optional[Context],
        email: str,
        password: str,
        password_prehashed: bool = False,
        expiry_days: int = 1,
    ) -> Tuple[Credential, int]:
        call = self._next_call("create_credential")
        call.ctx = ctx
        call.email = email
        call.password = password
        call.password_prehashed = password_prehashed
        call.expiry_days = expiry_days
        await asyncio.sleep(call.delay)
        if call.error is not None:
            raise call.error
        return call.credential, call.status_code

    async def do(
        self,
        ctx: Optional[Context],
        request: httpx.Request,
        signer: Optional[Signer] = None,
        first_party: bool = True,
    ) -> httpx.Response:
        call = self._next_call("do")
        call.ctx = ctx
        call.request = request
        call.signer = signer
        call.first_party = first_party
        await asyncio.sleep(call.delay)
        if call.error is not None:
            raise call.error
        return call.response

    async def get(
        self,
        ctx: Optional[Context],
        url: str,
        signer: Optional[Signer] = None,
        first_party: bool = True,
    ) -> httpx.Response:
        call = self._next_call("get")
        call.ctx = ctx
        call.url = url
        call.signer = signer
        call.first_party = first_party
        await asyncio.sleep(call.delay)
        if call.error is not None:
            raise call.error
        return call.response
