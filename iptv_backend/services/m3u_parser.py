"""M3U/M3U8 playlist parser."""
import logging
import os
from typing import Callable, Dict, List, Optional
from urllib.parse import urlparse

import aiofiles

from ..config import Config
from ..errors import PlaylistParseError
from ..identity import generate_id
from ..models.channel import Channel
from ..models.playlist import Playlist
from .playlist_fetcher import fetch_playlist

logger = logging.getLogger(__name__)

EXTINF_PREFIX = "#EXTINF:"

# Attribute keys read from the region after the first space of an EXTINF line
LOGO_KEY = 'tvg-logo="'
GROUP_KEY = 'group-title="'
EPG_ID_KEY = 'tvg-id="'


class M3UParser:
    """Parser for extended M3U playlists.

    Parsing is permissive: malformed entries are dropped, never reported.
    An ``#EXTINF:`` line must be immediately followed by its URL line; the
    line after an ``#EXTINF:`` is always consumed as the URL candidate, even
    when it turns out to be unusable.
    """

    @classmethod
    def parse(cls, content: str) -> List[Channel]:
        """Parse M3U content and return list of channels in source order."""
        channels = []
        lines = content.split('\n')

        i = 0
        while i < len(lines):
            line = lines[i].strip()

            if line.startswith(EXTINF_PREFIX):
                # Next line is the URL candidate
                i += 1
                if i < len(lines):
                    url = lines[i].strip()
                    if url and not url.startswith('#'):
                        channels.append(cls._parse_channel(line, url))

            i += 1

        return channels

    @classmethod
    def parse_bytes(cls, data: bytes, encoding: str = "utf-8") -> List[Channel]:
        """Decode raw playlist bytes and parse them."""
        if encoding.lower().replace("-", "") == "utf8":
            encoding = "utf-8-sig"
        try:
            content = data.decode(encoding)
        except (UnicodeDecodeError, LookupError) as e:
            raise PlaylistParseError(f"Failed to decode playlist as {encoding}: {e}") from e
        return cls.parse(content)

    @classmethod
    def _parse_channel(cls, extinf_line: str, url: str) -> Channel:
        """Build a channel from an EXTINF line and its URL."""
        logo = group = epg_id = None

        space_idx = extinf_line.find(' ')
        if space_idx != -1:
            attrs = extinf_line[space_idx:]
            logo = cls._extract_attribute(attrs, LOGO_KEY)
            group = cls._extract_attribute(attrs, GROUP_KEY)
            epg_id = cls._extract_attribute(attrs, EPG_ID_KEY)

        # Everything after the last comma is the display name
        last_comma_idx = extinf_line.rfind(',')
        name = extinf_line[last_comma_idx + 1:].strip() if last_comma_idx != -1 else ""

        return Channel(
            id=generate_id(name, url),
            name=name,
            url=url,
            logo=logo,
            group=group,
            epg_id=epg_id,
        )

    @staticmethod
    def _extract_attribute(attrs: str, key: str) -> Optional[str]:
        """Read the quoted value following the first occurrence of ``key``."""
        start = attrs.find(key)
        if start == -1:
            return None
        start += len(key)
        end = attrs.find('"', start)
        if end == -1:
            return None
        return attrs[start:end]

    @classmethod
    async def parse_from_url(
        cls,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
        config: Optional[Config] = None,
        **fetch_options,
    ) -> Playlist:
        """Fetch an M3U playlist from a URL and parse it."""
        config = config or Config()
        content = await fetch_playlist(
            url,
            user_agent=config.USER_AGENT,
            timeout=config.PLAYLIST_TIMEOUT,
            headers=headers,
            progress_callback=progress_callback,
            **fetch_options,
        )

        channels = cls.parse(content)
        logger.info(f"Parsed {len(channels)} channels from {url}")

        return Playlist(
            name=cls._extract_playlist_name(url),
            source=url,
            channels=channels,
        )

    @classmethod
    async def parse_from_file(cls, file_path: str) -> Playlist:
        """Parse an M3U playlist from a local file."""
        async with aiofiles.open(file_path, 'rb') as f:
            data = await f.read()

        channels = cls.parse_bytes(data)
        logger.info(f"Parsed {len(channels)} channels from {file_path}")

        name = os.path.splitext(os.path.basename(file_path))[0]

        return Playlist(
            name=name,
            source=str(file_path),
            channels=channels,
        )

    @staticmethod
    def _extract_playlist_name(url: str) -> str:
        """Extract playlist name from URL."""
        parsed = urlparse(url)
        path = parsed.path

        if path:
            filename = os.path.basename(path)
            name = os.path.splitext(filename)[0]
            if name and name != "get" and len(name) > 2:
                return name

        return parsed.netloc or "Playlist"


def parse_m3u(content: str) -> List[Channel]:
    """Parse playlist text into channels."""
    return M3UParser.parse(content)
