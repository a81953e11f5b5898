from __future__ import annotations

from typing import Callable, Generator, List
from unittest.mock import patch

import httpx
import pytest

from rollkeeper.exceptions import BackendError
from rollkeeper.utils.http import HTTPClient, probe_channel, release_url

RELEASE = "https://deb.example/debian/dists/unstable/Release"


def make_client(
    handler: Callable[[httpx.Request], httpx.Response], **kwargs
) -> HTTPClient:
    """Return an HTTPClient whose transport is served by *handler*."""
    client = HTTPClient(**kwargs)
    client._client = httpx.Client(transport=httpx.MockTransport(handler))
    return client


@pytest.fixture(autouse=True)
def no_sleep() -> Generator[None, None, None]:
    """Skip retry backoff delays."""
    with patch("rollkeeper.utils.http.time.sleep"):
        yield


@pytest.mark.unit
class TestHTTPClientInit:
    """Tests for HTTPClient configuration."""

    def test_defaults(self) -> None:
        """Test the probe defaults and user agent."""
        client = HTTPClient()

        assert client.timeout == 10
        assert client.max_retries == 2
        assert client.verify_ssl is True
        assert client.user_agent.startswith("rollkeeper/")

    def test_lazy_client_and_close(self) -> None:
        """Test the httpx client is created on demand and closed on exit."""
        client = HTTPClient(timeout=3)
        assert client._client is None

        with client:
            assert isinstance(client._client, httpx.Client)

        assert client._client is None


@pytest.mark.unit
class TestRequestWithRetry:
    """Tests for retry and error mapping."""

    def test_success(self) -> None:
        """Test a 200 answer is returned."""
        client = make_client(lambda request: httpx.Response(200, text="ok"))

        assert client.get(RELEASE).text == "ok"

    def test_client_error_not_retried(self) -> None:
        """Test a 404 fails immediately with the status as returncode."""
        calls: List[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.method)
            return httpx.Response(404)

        client = make_client(handler, max_retries=2)

        with pytest.raises(BackendError) as exc_info:
            client.head(RELEASE)

        assert exc_info.value.returncode == 404
        assert calls == ["HEAD"]

    def test_server_error_retried(self) -> None:
        """Test 5xx answers are retried until the retries run out."""
        calls: List[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.method)
            return httpx.Response(503)

        client = make_client(handler, max_retries=2)

        with pytest.raises(BackendError, match="after 3 attempts"):
            client.get(RELEASE)
        assert len(calls) == 3

    def test_recovers_after_transport_error(self) -> None:
        """Test a transient network failure is retried."""
        attempts = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            attempts["n"] += 1
            if attempts["n"] == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200)

        client = make_client(handler, max_retries=1)

        assert client.get(RELEASE).status_code == 200
        assert attempts["n"] == 2

    def test_timeout_exhausts_retries(self) -> None:
        """Test repeated timeouts end in a BackendError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        client = make_client(handler, max_retries=0)

        with pytest.raises(BackendError) as exc_info:
            client.get(RELEASE)
        assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)

    def test_url_is_cleaned(self) -> None:
        """Test stray quotes around the URL are dropped."""
        seen: List[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200)

        make_client(handler).get(f' "{RELEASE}" ')

        assert seen == [RELEASE]


@pytest.mark.unit
class TestIsReachable:
    """Tests for HTTPClient.is_reachable."""

    def test_head_ok(self) -> None:
        """Test a successful HEAD means reachable."""
        client = make_client(lambda request: httpx.Response(200))

        assert client.is_reachable(RELEASE) is True

    def test_falls_back_to_get_on_405(self) -> None:
        """Test mirrors rejecting HEAD are probed with GET."""
        methods: List[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.method)
            return httpx.Response(405 if request.method == "HEAD" else 200)

        client = make_client(handler)

        assert client.is_reachable(RELEASE) is True
        assert methods == ["HEAD", "GET"]

    def test_unreachable(self) -> None:
        """Test network failures are reported as False, not raised."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route to host", request=request)

        client = make_client(handler, max_retries=0)

        assert client.is_reachable(RELEASE) is False

    def test_missing_release_file(self) -> None:
        """Test a mirror without the channel is unreachable."""
        client = make_client(lambda request: httpx.Response(404))

        assert client.is_reachable(RELEASE) is False


@pytest.mark.unit
class TestProbeChannel:
    """Tests for release_url and probe_channel."""

    @pytest.mark.parametrize(
        "mirror", ["https://deb.example/debian", "https://deb.example/debian/"]
    )
    def test_release_url(self, mirror: str) -> None:
        """Test trailing slashes are normalized."""
        assert release_url(mirror) == RELEASE

    def test_channel_check_uses_single_attempt(self) -> None:
        """Test the probe builds a bounded, non-retrying client."""
        with patch("rollkeeper.utils.http.HTTPClient") as mock_cls:
            instance = mock_cls.return_value.__enter__.return_value
            instance.is_reachable.return_value = True

            assert probe_channel("https://deb.example/debian", timeout=2.5) is True

        mock_cls.assert_called_once_with(timeout=2.5, max_retries=0)
        instance.is_reachable.assert_called_once_with(RELEASE)
