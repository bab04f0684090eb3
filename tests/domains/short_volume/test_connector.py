"""Tests for the FINRA daily file connector, against httpx.MockTransport."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from regsho_spine.core.errors import (
    ErrorCategory,
    NetworkError,
    RemoteTimeoutError,
    ResponseTooLargeError,
    SourceNotFoundError,
)
from regsho_spine.core.settings import DEFAULT_USER_AGENT, RegShoSettings
from regsho_spine.domains.short_volume.connector import ShortVolumeFetcher

BODY = (
    "Date|Symbol|ShortVolume|ShortExemptVolume|TotalVolume|Market\n"
    "20240603|ABCD|1000|200|5000|N\n"
)


def _fetcher(handler, **kwargs) -> ShortVolumeFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ShortVolumeFetcher(client=client, **kwargs)


class TestUrl:
    def test_url_for(self):
        fetcher = ShortVolumeFetcher()
        assert (
            fetcher.url_for("20240603")
            == "https://cdn.finra.org/equity/regsho/daily/CNMSshvol20240603.txt"
        )

    def test_from_settings(self):
        settings = RegShoSettings(
            source_base_url="http://mirror.local/regsho/",
            source_file_prefix="FNSQshvol",
            request_timeout=5,
            max_response_bytes=1024,
        )
        fetcher = ShortVolumeFetcher.from_settings(settings)
        assert fetcher.url_for("20240603") == "http://mirror.local/regsho/FNSQshvol20240603.txt"
        assert fetcher.timeout == 5
        assert fetcher.max_bytes == 1024

    @pytest.mark.asyncio
    async def test_owned_client_sends_browser_user_agent(self):
        fetcher = ShortVolumeFetcher()
        client = fetcher._get_client()
        assert client.headers["User-Agent"] == DEFAULT_USER_AGENT
        await fetcher.aclose()
        assert fetcher._client is None


class TestFetch:
    @pytest.mark.asyncio
    async def test_success(self):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, text=BODY)

        async with _fetcher(handler) as fetcher:
            body = await fetcher.fetch("20240603")

        assert body == BODY
        assert seen == ["https://cdn.finra.org/equity/regsho/daily/CNMSshvol20240603.txt"]

    @pytest.mark.asyncio
    async def test_not_found(self):
        fetcher = _fetcher(lambda request: httpx.Response(404, text="Not Found"))

        with pytest.raises(SourceNotFoundError) as exc_info:
            await fetcher.fetch("20240601")

        error = exc_info.value
        assert error.context.http_status == 404
        assert error.context.date_key == "20240601"
        assert error.retryable is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", ["", "   \n\r\n"])
    async def test_empty_body_is_none(self, body):
        fetcher = _fetcher(lambda request: httpx.Response(200, text=body))
        assert await fetcher.fetch("20240603") is None

    @pytest.mark.asyncio
    async def test_server_error(self):
        fetcher = _fetcher(lambda request: httpx.Response(500, text="oops"))

        with pytest.raises(NetworkError) as exc_info:
            await fetcher.fetch("20240603")

        assert exc_info.value.context.http_status == 500
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_connect_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError) as exc_info:
            await _fetcher(handler).fetch("20240603")

        assert exc_info.value.category == ErrorCategory.NETWORK
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_transport_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(RemoteTimeoutError):
            await _fetcher(handler).fetch("20240603")

    @pytest.mark.asyncio
    async def test_overall_timeout(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, text=BODY)

        with pytest.raises(RemoteTimeoutError):
            await _fetcher(handler, timeout=0.05).fetch("20240603")

    @pytest.mark.asyncio
    async def test_too_large_declared(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, text="x" * 100), max_bytes=10)

        with pytest.raises(ResponseTooLargeError) as exc_info:
            await fetcher.fetch("20240603")

        assert exc_info.value.limit == 10

    @pytest.mark.asyncio
    async def test_too_large_streamed(self):
        async def chunks():
            for _ in range(10):
                yield b"x" * 8

        # No content-length: the limit is enforced while streaming
        fetcher = _fetcher(lambda request: httpx.Response(200, content=chunks()), max_bytes=32)

        with pytest.raises(ResponseTooLargeError):
            await fetcher.fetch("20240603")

    @pytest.mark.asyncio
    async def test_at_limit_is_accepted(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, text="y" * 10), max_bytes=10)
        assert await fetcher.fetch("20240603") == "y" * 10

    @pytest.mark.asyncio
    async def test_redirect_loop(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"location": str(request.url)})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
        fetcher = ShortVolumeFetcher(client=client)

        with pytest.raises(NetworkError) as exc_info:
            await fetcher.fetch("20240603")

        assert isinstance(exc_info.value.cause, httpx.TooManyRedirects)

    @pytest.mark.asyncio
    async def test_corrupt_content_encoding(self):
        fetcher = _fetcher(
            lambda request: httpx.Response(
                200, headers={"content-encoding": "gzip"}, content=b"not gzip"
            )
        )

        with pytest.raises(NetworkError) as exc_info:
            await fetcher.fetch("20240603")

        assert isinstance(exc_info.value.cause, httpx.DecodingError)

    @pytest.mark.asyncio
    async def test_unknown_charset_falls_back_to_utf8(self):
        fetcher = _fetcher(
            lambda request: httpx.Response(
                200,
                headers={"content-type": "text/plain; charset=x-no-such-codec"},
                content=BODY.encode("utf-8"),
            )
        )
        assert await fetcher.fetch("20240603") == BODY
