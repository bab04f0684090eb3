"""
FINRA Reg SHO daily file connector - HTTP retrieval of one date's file.

The file for trading date D lives at a fixed URL template:

    https://cdn.finra.org/equity/regsho/daily/CNMSshvol<YYYYMMDD>.txt

Outcomes the caller can tell apart:
- text body                      -> file content
- None                           -> 200 with an empty/whitespace body
- SourceNotFoundError            -> 404, nothing published (weekend, holiday)
- RemoteTimeoutError             -> request exceeded ``timeout`` seconds
- ResponseTooLargeError          -> body exceeded ``max_bytes``
- NetworkError                   -> any other connectivity/HTTP failure,
                                    including redirect loops and corrupt
                                    content encodings

One ``httpx.AsyncClient`` is kept per fetcher so repeated calls reuse
connections.
"""

import asyncio

import httpx

from regsho_spine.core.errors import (
    NetworkError,
    RemoteTimeoutError,
    ResponseTooLargeError,
    SourceNotFoundError,
)
from regsho_spine.core.logging import get_logger
from regsho_spine.core.settings import DEFAULT_USER_AGENT, RegShoSettings
from regsho_spine.domains.short_volume.schema import SOURCE_NAME

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://cdn.finra.org/equity/regsho/daily"
DEFAULT_FILE_PREFIX = "CNMSshvol"
DEFAULT_TIMEOUT = 120.0
DEFAULT_MAX_BYTES = 50 * 1024 * 1024


class ShortVolumeFetcher:
    """
    Fetch daily short sale volume files via HTTP.

    Args:
        base_url: Directory URL the daily files live under
        file_prefix: Filename prefix before the date key
        timeout: Overall bound in seconds for one fetch (connect + body)
        max_bytes: Largest body accepted; larger responses are rejected
        user_agent: User-Agent header (the CDN rejects bare clients)
        client: Optional pre-built client (tests inject a MockTransport)
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        file_prefix: str = DEFAULT_FILE_PREFIX,
        timeout: float = DEFAULT_TIMEOUT,
        max_bytes: int = DEFAULT_MAX_BYTES,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.file_prefix = file_prefix
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.user_agent = user_agent
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: RegShoSettings) -> "ShortVolumeFetcher":
        return cls(
            base_url=settings.source_base_url,
            file_prefix=settings.source_file_prefix,
            timeout=settings.request_timeout,
            max_bytes=settings.max_response_bytes,
            user_agent=settings.user_agent,
        )

    def url_for(self, date_key: str) -> str:
        """Build the file URL for a date key."""
        return f"{self.base_url}/{self.file_prefix}{date_key}.txt"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "text/plain,*/*",
                    "Cache-Control": "no-cache",
                },
            )
        return self._client

    async def fetch(self, date_key: str) -> str | None:
        """
        Download the raw file body for *date_key*.

        Returns None for an empty or whitespace-only body.
        """
        url = self.url_for(date_key)
        client = self._get_client()
        logger.info("short_volume.fetch.started", date_key=date_key, url=url)

        try:
            async with asyncio.timeout(self.timeout):
                body = await self._download(client, url, date_key)
        except (TimeoutError, httpx.TimeoutException) as e:
            logger.warning("short_volume.fetch.timeout", date_key=date_key, timeout=self.timeout)
            raise RemoteTimeoutError(
                f"Timed out after {self.timeout}s fetching {date_key}", cause=e
            ).with_context(date_key=date_key, url=url, source_name=SOURCE_NAME) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error("short_volume.fetch.http_error", date_key=date_key, status=status)
            raise NetworkError(f"HTTP {status} fetching {date_key}", cause=e).with_context(
                date_key=date_key, url=url, http_status=status, source_name=SOURCE_NAME
            ) from e
        except httpx.RequestError as e:
            logger.error("short_volume.fetch.network_error", date_key=date_key, error=str(e))
            raise NetworkError(f"Network error fetching {date_key}: {e}", cause=e).with_context(
                date_key=date_key, url=url, source_name=SOURCE_NAME
            ) from e

        if not body.strip():
            logger.warning("short_volume.fetch.empty", date_key=date_key)
            return None

        logger.info("short_volume.fetch.completed", date_key=date_key, bytes=len(body))
        return body

    async def _download(self, client: httpx.AsyncClient, url: str, date_key: str) -> str:
        async with client.stream("GET", url) as response:
            if response.status_code == httpx.codes.NOT_FOUND:
                logger.info("short_volume.fetch.not_found", date_key=date_key)
                raise SourceNotFoundError(f"No file published for {date_key}").with_context(
                    date_key=date_key,
                    url=url,
                    http_status=response.status_code,
                    source_name=SOURCE_NAME,
                )
            response.raise_for_status()

            declared = response.headers.get("content-length", "")
            if declared.isdigit() and int(declared) > self.max_bytes:
                raise self._too_large(date_key, url, int(declared))

            size = 0
            chunks: list[bytes] = []
            async for chunk in response.aiter_bytes():
                size += len(chunk)
                if size > self.max_bytes:
                    raise self._too_large(date_key, url, size)
                chunks.append(chunk)

            return self._decode(b"".join(chunks), response.charset_encoding, date_key)

    def _decode(self, raw: bytes, charset: str | None, date_key: str) -> str:
        try:
            return raw.decode(charset or "utf-8", errors="replace")
        except LookupError:
            logger.warning("short_volume.fetch.unknown_charset", date_key=date_key, charset=charset)
            return raw.decode("utf-8", errors="replace")

    def _too_large(self, date_key: str, url: str, size: int) -> ResponseTooLargeError:
        logger.error(
            "short_volume.fetch.too_large", date_key=date_key, size=size, limit=self.max_bytes
        )
        return ResponseTooLargeError(
            f"Response for {date_key} exceeds {self.max_bytes} bytes",
            limit=self.max_bytes,
        ).with_context(date_key=date_key, url=url, source_name=SOURCE_NAME)

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ShortVolumeFetcher":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()
