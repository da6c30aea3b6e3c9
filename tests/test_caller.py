"""
Tests for the ELS API handler and caller.
"""

import asyncio
import base64
import hashlib
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from pydantic import ValidationError

from els_sdk.clock import FixedTimeProvider
from els_sdk.config import APIConfig
from els_sdk.context import Context
from els_sdk.exceptions import Cancelled, DeadlineExceeded, UnexpectedStatusCode
from els_sdk.http import APIHandler, ELSAPICaller, hash_password
from els_sdk.signing import APISigner
from els_sdk.testing import StubSigner

from .conftest import SimServer

KEY_JSON = (
    '{"accessKeyId":"AK","secretAccessKey":"SAK",'
    '"expiryDt":"2016-01-01T00:00:00Z","emailAddress":"example@test.com"}'
)


def make_caller(server, time_provider, **kwargs):
    return ELSAPICaller(client=server.client(), time_provider=time_provider, **kwargs)


class TestConstruction:
    """Tests for ELSAPICaller defaults."""

    def test_defaults(self, time_provider, monkeypatch):
        for name in ("ELS_API_SCHEME", "ELS_API_DOMAIN", "ELS_API_VERSION", "ELS_API_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)

        caller = ELSAPICaller(time_provider=time_provider, timeout=1.0)

        assert caller.time_provider is time_provider
        assert caller.timeout == 1.0
        assert caller.scheme == "https"
        assert caller.domain == "api.elasticlicensing.com"
        assert caller.version == "1.0"
        assert caller.url_prefix() == "https://api.elasticlicensing.com/1.0"
        assert caller.last_failure_time() is None

    def test_api_version(self):
        assert ELSAPICaller(api_version="1.2").version == "1.2"

    def test_config_from_environment(self, monkeypatch):
        monkeypatch.delenv("ELS_API_VERSION", raising=False)
        monkeypatch.setenv("ELS_API_SCHEME", "http")
        monkeypatch.setenv("ELS_API_DOMAIN", "localhost:8080")
        monkeypatch.setenv("ELS_API_TIMEOUT", "2.5")

        caller = ELSAPICaller()

        assert caller.url_prefix() == "http://localhost:8080/1.0"
        assert caller.timeout == 2.5


class TestDo:
    """Tests for ELSAPICaller.do and get."""

    @pytest.mark.asyncio
    async def test_completes_first_party_url(self, time_provider):
        """Relative paths are pointed at the API host and version."""
        server = SimServer()
        caller = make_caller(server, time_provider)

        response = await caller.do(None, httpx.Request("GET", "/path/to/route?a=b"))

        sent = server.last_request
        assert response.status_code == 200
        assert response.json() == {"some": "data"}
        assert sent.url.scheme == "https"
        assert sent.url.host == "api.elasticlicensing.com"
        assert sent.url.path == "/1.0/path/to/route"
        assert sent.url.params["a"] == "b"
        assert sent.headers["Host"] == "api.elasticlicensing.com"

    @pytest.mark.asyncio
    async def test_completes_url_with_port(self, time_provider):
        server = SimServer()
        config = APIConfig(scheme="http", domain="127.0.0.1:8080", version="1.0", timeout=1.0)
        caller = make_caller(server, time_provider, config=config)

        await caller.get(None, "/things")

        sent = server.last_request
        assert str(sent.url) == "http://127.0.0.1:8080/1.0/things"
        assert sent.headers["Host"] == "127.0.0.1:8080"

    @pytest.mark.asyncio
    async def test_third_party_url_unchanged(self, time_provider):
        """Third-party requests go out exactly as built."""
        server = SimServer()
        caller = make_caller(server, time_provider)

        response = await caller.get(None, "http://another.api.com/a/b", None, first_party=False)

        sent = server.last_request
        assert response.json() == {"some": "data"}
        assert sent.url.scheme == "http"
        assert sent.url.host == "another.api.com"
        assert sent.url.path == "/a/b"

    @pytest.mark.asyncio
    async def test_any_status_is_returned(self, time_provider):
        """Status codes are left for the caller to interpret."""
        server = SimServer(status_code=500, body='{"error":"oops"}')
        caller = make_caller(server, time_provider)

        response = await caller.get(None, "/path")

        assert response.status_code == 500
        assert caller.last_failure_time() is None

    @pytest.mark.asyncio
    async def test_signer_gets_time_provider_now(self, time_provider, now):
        server = SimServer()
        signer = StubSigner()
        caller = make_caller(server, time_provider)

        await caller.get(None, "/path", signer)

        assert signer.last_signed == now
        assert server.last_request.headers["Authorization"] == "some auth"
        assert server.last_request.headers["X-Els-Date"] == "2015-01-01T00:00:00Z"

    @pytest.mark.asyncio
    async def test_signer_error_skips_network(self, time_provider):
        """A signing failure is returned before anything is sent."""
        server = SimServer()
        failure = RuntimeError("dummy error")
        caller = make_caller(server, time_provider)

        with pytest.raises(RuntimeError) as exc_info:
            await caller.get(None, "/path", StubSigner(error=failure))

        assert exc_info.value is failure
        assert server.requests == []
        assert caller.last_failure_time() is None

    @pytest.mark.asyncio
    async def test_signed_body_reaches_server(self, time_provider, credential):
        """The body hashed for the signature is still sent intact."""
        server = SimServer(status_code=201)
        caller = make_caller(server, time_provider)
        body = b'{"title":"ATitle"}'

        response = await caller.do(
            None, httpx.Request("POST", "/path", content=body), APISigner(credential)
        )

        sent = server.last_request
        assert response.status_code == 201
        assert server.bodies[-1] == body
        assert sent.headers["Authorization"].startswith("ELS AK:")
        assert sent.headers["Content-Type"] == "application/json;charset=utf-8"
        assert sent.url.path == "/1.0/path"

    @pytest.mark.asyncio
    async def test_async_streamed_body_is_signed(self, time_provider, credential):
        """An async-generated body is buffered, signed and still sent in full."""
        server = SimServer(status_code=201)
        caller = make_caller(server, time_provider)
        body = b'{"title":"ATitle"}'

        async def chunks():
            yield body[:9]
            yield body[9:]

        response = await caller.do(
            None, httpx.Request("POST", "/path", content=chunks()), APISigner(credential)
        )

        sent = server.last_request
        assert response.status_code == 201
        assert server.bodies[-1] == body
        assert sent.headers["Content-Length"] == str(len(body))
        assert "Transfer-Encoding" not in sent.headers

        expected = httpx.Request("POST", "https://api.elasticlicensing.com/1.0/path", content=body)
        APISigner(credential).sign(expected, time_provider.now())
        assert sent.headers["Authorization"] == expected.headers["Authorization"]

    @pytest.mark.asyncio
    async def test_default_timeout(self, time_provider, now):
        """Without a context the caller's own timeout applies."""
        server = SimServer(delay=0.5)
        caller = make_caller(server, time_provider, timeout=0.01)

        with pytest.raises(DeadlineExceeded):
            await caller.get(None, "/path")

        assert caller.last_failure_time() == now

    @pytest.mark.asyncio
    async def test_failure_time_is_now(self):
        """The failure is stamped with the current time."""
        server = SimServer(delay=0.5)
        caller = ELSAPICaller(client=server.client(), timeout=0.01)

        before = datetime.now(timezone.utc)
        with pytest.raises(DeadlineExceeded):
            await caller.get(None, "/path")

        failed_at = caller.last_failure_time()
        assert failed_at is not None
        assert before <= failed_at <= datetime.now(timezone.utc) + timedelta(seconds=1)

    @pytest.mark.asyncio
    async def test_given_context_used_verbatim(self, time_provider):
        """A caller's context is not narrowed by the default timeout."""
        server = SimServer(delay=0.05)
        caller = make_caller(server, time_provider, timeout=0.001)

        response = await caller.get(Context.background(), "/path")

        assert response.status_code == 200
        assert caller.last_failure_time() is None

    @pytest.mark.asyncio
    async def test_given_context_cancelled(self, time_provider, now):
        server = SimServer(delay=1)
        caller = make_caller(server, time_provider)
        ctx = Context.background()
        asyncio.get_running_loop().call_later(0.01, ctx.cancel)

        with pytest.raises(Cancelled):
            await caller.get(ctx, "/path")

        assert caller.last_failure_time() == now

    @pytest.mark.asyncio
    async def test_transport_error_passes_through(self, time_provider, now):
        """Transport errors are raised unchanged and recorded."""
        server = SimServer(error=httpx.ConnectError("connection refused"))
        caller = make_caller(server, time_provider)

        with pytest.raises(httpx.ConnectError):
            await caller.get(None, "/path")

        assert caller.last_failure_time() == now

    @pytest.mark.asyncio
    async def test_latest_failure_wins(self, time_provider, now):
        server = SimServer(delay=0.5)
        caller = make_caller(server, time_provider, timeout=0.01)

        with pytest.raises(DeadlineExceeded):
            await caller.get(None, "/path")
        later = time_provider.advance(timedelta(minutes=5))
        with pytest.raises(DeadlineExceeded):
            await caller.get(None, "/path")

        assert caller.last_failure_time() == later

    @pytest.mark.asyncio
    async def test_concurrent_failures(self, time_provider, now):
        """Concurrent calls each get their own default context."""
        server = SimServer(delay=0.5)
        caller = make_caller(server, time_provider, timeout=0.01)

        results = await asyncio.gather(
            *(caller.get(None, f"/path/{i}") for i in range(10)),
            return_exceptions=True,
        )

        assert all(isinstance(r, DeadlineExceeded) for r in results)
        assert caller.last_failure_time() == now

    def test_failure_time_thread_safety(self, time_provider, now):
        """Readers and writers from many threads never see a torn value."""
        caller = ELSAPICaller(time_provider=time_provider)
        stamps = [now + timedelta(seconds=i) for i in range(50)]

        def write(stamp):
            caller._record_failure(stamp)
            return caller.last_failure_time()

        with ThreadPoolExecutor(max_workers=8) as pool:
            seen = list(pool.map(write, stamps))

        assert all(s in stamps for s in seen)
        assert caller.last_failure_time() in stamps

    @pytest.mark.asyncio
    async def test_owned_client_closed(self):
        async with ELSAPICaller() as caller:
            client = caller._client
            assert client is not None

        assert client.is_closed


class TestCreateCredential:
    """Tests for APIHandler.create_credential."""

    @pytest.mark.asyncio
    async def test_created(self):
        """A 201 reply is decoded into an access key."""
        server = SimServer(status_code=201, body=KEY_JSON)
        handler = APIHandler(client=server.client())

        key, status = await handler.create_credential(None, "example@test.com", "pw", False, 7)

        assert status == 201
        assert key.id == "AK"
        assert key.secret.get_secret_value() == "SAK"
        assert key.expiry == datetime(2016, 1, 1, tzinfo=timezone.utc)
        assert key.owner == "example@test.com"

    @pytest.mark.asyncio
    async def test_request_layout(self):
        server = SimServer(status_code=201, body=KEY_JSON)
        handler = APIHandler(client=server.client())

        await handler.create_credential(None, "example@test.com", "pw", False, 7)

        sent = server.last_request
        assert sent.method == "POST"
        assert sent.url.host == "api.elasticlicensing.com"
        assert sent.url.path == "/1.0/users/example@test.com/accessKeys"
        assert sent.url.params["expires"] == "1"
        assert sent.url.params["numDaysTillExpiry"] == "7"

    @pytest.mark.asyncio
    async def test_password_is_prehashed(self):
        """Plaintext passwords never leave the client."""
        server = SimServer(status_code=201, body=KEY_JSON)
        handler = APIHandler(client=server.client())

        await handler.create_credential(None, "example@test.com", "pw", False, 1)

        hashed = hashlib.sha256(b"pw").hexdigest()
        assert hash_password("pw") == hashed
        expected = base64.b64encode(f"example@test.com:{hashed}".encode()).decode()
        assert server.last_request.headers["Authorization"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_prehashed_password_sent_as_is(self):
        server = SimServer(status_code=201, body=KEY_JSON)
        handler = APIHandler(client=server.client())

        await handler.create_credential(None, "example@test.com", "already-hashed", True, 1)

        expected = base64.b64encode(b"example@test.com:already-hashed").decode()
        assert server.last_request.headers["Authorization"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_unexpected_status(self):
        """Anything but 201 raises, carrying the status code."""
        server = SimServer(status_code=401, body='{"error":"unauthorised"}')
        handler = APIHandler(client=server.client())

        with pytest.raises(UnexpectedStatusCode) as exc_info:
            await handler.create_credential(None, "example@test.com", "pw", False, 1)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_undecodable_body(self):
        server = SimServer(status_code=201, body="not json")
        handler = APIHandler(client=server.client())

        with pytest.raises(ValidationError):
            await handler.create_credential(None, "example@test.com", "pw", False, 1)

    @pytest.mark.asyncio
    async def test_timeout(self):
        server = SimServer(status_code=201, body=KEY_JSON, delay=0.5)
        handler = APIHandler(client=server.client())

        with pytest.raises(DeadlineExceeded):
            await handler.create_credential(
                Context.with_timeout(0.01), "example@test.com", "pw", False, 1
            )

    @pytest.mark.asyncio
    async def test_caller_issues_keys(self, time_provider):
        """The caller exposes the same key issuance."""
        server = SimServer(status_code=201, body=KEY_JSON)
        caller = make_caller(server, time_provider)

        key, _ = await caller.create_credential(None, "example@test.com", "pw")

        assert key.can_sign()
