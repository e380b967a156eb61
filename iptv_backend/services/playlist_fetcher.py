"""HTTP download of playlist documents."""
import logging
from typing import Callable, Dict, Optional, Tuple

import httpx

from ..config import DEFAULT_USER_AGENT
from ..errors import (
    ClientBuildError,
    PlaylistBodyReadError,
    PlaylistHTTPStatusError,
    PlaylistNetworkError,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536  # 64KB chunks


def _create_client(
    user_agent: str,
    timeout: float,
    headers: Optional[Dict[str, str]],
    transport: Optional[httpx.AsyncBaseTransport],
) -> httpx.AsyncClient:
    """Create configured HTTP client."""
    request_headers = {"User-Agent": user_agent}
    if headers:
        # Per-playlist headers (User-Agent, Referer) win over the defaults
        request_headers.update({k: v for k, v in headers.items() if v})
    try:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            headers=request_headers,
            transport=transport,
        )
    except (TypeError, ValueError) as e:
        raise ClientBuildError(f"Failed to create HTTP client: {e}") from e


async def fetch_bytes(
    url: str,
    *,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout: float = 30.0,
    headers: Optional[Dict[str, str]] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Tuple[bytes, Optional[str]]:
    """Download ``url`` and return the raw body with its declared charset.

    Raises a ``PlaylistFetchError`` subclass naming the failing stage. Nothing
    is retried.
    """
    async with _create_client(user_agent, timeout, headers, transport) as client:
        try:
            async with client.stream('GET', url) as response:
                if not response.is_success:
                    raise PlaylistHTTPStatusError(
                        response.status_code, response.reason_phrase or "Unknown"
                    )

                total_size = int(response.headers.get('content-length', 0) or 0)
                try:
                    downloaded = 0
                    chunks = []
                    async for chunk in response.aiter_bytes(chunk_size=CHUNK_SIZE):
                        chunks.append(chunk)
                        downloaded += len(chunk)

                        if progress_callback and total_size > 0:
                            progress_callback(downloaded, total_size)
                except (httpx.HTTPError, httpx.StreamError) as e:
                    raise PlaylistBodyReadError(f"Failed to read response: {e}") from e
                charset = response.charset_encoding
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise PlaylistNetworkError(f"Failed to fetch URL: {e}") from e

    return b''.join(chunks), charset


async def fetch_playlist(
    url: str,
    *,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout: float = 30.0,
    headers: Optional[Dict[str, str]] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """Download ``url`` and return the body as text."""
    logger.info(f"Fetching playlist {url}")

    data, charset = await fetch_bytes(
        url,
        user_agent=user_agent,
        timeout=timeout,
        headers=headers,
        progress_callback=progress_callback,
        transport=transport,
    )
    try:
        content = data.decode(charset or 'utf-8', errors='replace')
    except LookupError as e:
        raise PlaylistBodyReadError(f"Failed to read response: {e}") from e

    logger.debug(f"Fetched {len(content)} characters from {url}")
    return content
