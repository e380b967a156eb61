"""Disk cache for channel logos."""
import asyncio
import hashlib
import logging
import os
import uuid
from pathlib import Path
from typing import Dict, Optional, Set

import aiofiles
import aiofiles.os
import aiohttp

from ..config import Config
from ..errors import LogoCacheDirError, LogoCacheError, LogoCacheWriteError, LogoDownloadError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ["png", "jpg", "jpeg", "webp", "gif", "svg", "ico"]
DEFAULT_EXTENSION = ".png"


class ImageCache:
    """Content-addressed logo cache.

    Each logo URL maps to one file named after the MD5 of the URL. A file
    that exists is complete (downloads land under a temporary name first),
    so its presence alone answers a request. Nothing is ever evicted.
    """

    _instance: Optional['ImageCache'] = None

    def __init__(
        self,
        cache_dir: Optional[str] = None,
        timeout: Optional[float] = None,
        config: Optional[Config] = None,
    ):
        config = config or Config()
        self._cache_dir = Path(cache_dir) if cache_dir is not None else config.CACHE_DIR
        self._timeout = timeout if timeout is not None else config.LOGO_TIMEOUT
        self._memory_cache: Dict[str, str] = {}  # url -> local_path
        self._pending: Dict[str, asyncio.Future] = {}
        self._failed: Set[str] = set()

    @classmethod
    def get_instance(cls) -> 'ImageCache':
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = ImageCache()
        return cls._instance

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def _get_cache_key(self, url: str) -> str:
        """Generate cache key from URL."""
        return hashlib.md5(url.encode()).hexdigest()

    def _get_cache_path(self, url: str) -> Path:
        """Get local cache path for URL."""
        key = self._get_cache_key(url)
        # Preserve extension from URL if possible
        ext = DEFAULT_EXTENSION
        last_segment = url.split("?")[0].split("#")[0].rstrip("/").split("/")[-1]
        if "." in last_segment:
            url_ext = last_segment.rsplit(".", 1)[-1].lower()
            if url_ext in IMAGE_EXTENSIONS:
                ext = f".{url_ext}"
        return self._cache_dir / f"{key}{ext}"

    def get_cached(self, url: str) -> Optional[str]:
        """Get cached image path if exists."""
        if not url:
            return None

        if url in self._memory_cache:
            path = self._memory_cache[url]
            if os.path.exists(path):
                return path

        cache_path = self._get_cache_path(url)
        if cache_path.exists():
            self._memory_cache[url] = str(cache_path)
            return str(cache_path)

        return None

    async def cache_logo(self, url: str) -> str:
        """Return the local path of ``url``'s logo, downloading it if needed.

        Raises ``LogoCacheDirError``, ``LogoDownloadError`` or
        ``LogoCacheWriteError``; an already cached file short-circuits all
        of them.
        """
        cache_path = self._get_cache_path(url)
        if cache_path.exists():
            return str(cache_path)

        try:
            self._cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LogoCacheDirError(f"Failed to create cache dir: {e}") from e

        content = await self._download(url)

        # One temp file per call; concurrent writers never share it
        tmp_path = cache_path.with_name(f"{cache_path.name}.{uuid.uuid4().hex}.part")
        try:
            async with aiofiles.open(tmp_path, 'wb') as f:
                await f.write(content)
            await aiofiles.os.replace(tmp_path, cache_path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink()
            if cache_path.exists():
                # Another writer got there first
                return str(cache_path)
            raise LogoCacheWriteError(f"Failed to write cache file: {e}") from e

        logger.debug(f"Cached logo {url} -> {cache_path}")
        return str(cache_path)

    async def _download(self, url: str) -> bytes:
        """Fetch the raw logo bytes."""
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(url, timeout=aiohttp.ClientTimeout(total=self._timeout)) as response:
                    if response.status != 200:
                        raise LogoDownloadError(
                            f"Failed to fetch logo: HTTP {response.status} {response.reason or ''}".rstrip()
                        )
                    return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise LogoDownloadError(f"Failed to fetch logo: {e!r}") from e

    async def get_or_download(self, url: str) -> Optional[str]:
        """Get cached image or download it; ``None`` when it can't be had.

        Concurrent calls for one URL share a single download and a URL that
        failed once is not tried again until ``clear_cache``.
        """
        if not url or url in self._failed:
            return None

        cached = self.get_cached(url)
        if cached:
            return cached

        pending = self._pending.get(url)
        if pending is not None:
            return await asyncio.shield(pending)

        future = asyncio.get_running_loop().create_future()
        self._pending[url] = future
        try:
            path = await self.cache_logo(url)
        except LogoCacheError as e:
            logger.warning(f"Failed to cache logo {url}: {e}")
            self._failed.add(url)
            path = None
        except BaseException:
            future.cancel()
            raise
        else:
            self._memory_cache[url] = path
        finally:
            self._pending.pop(url, None)

        future.set_result(path)
        return path

    def clear_cache(self):
        """Forget in-memory state; files on disk are kept."""
        self._memory_cache.clear()
        self._failed.clear()
        self._pending.clear()


# Convenience function
def get_image_cache() -> ImageCache:
    """Get the global image cache instance."""
    return ImageCache.get_instance()
