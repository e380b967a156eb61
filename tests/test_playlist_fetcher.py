"""Tests for services/playlist_fetcher.py"""

import httpx
import pytest

from iptv_backend.config import Config, DEFAULT_USER_AGENT
from iptv_backend.errors import (
    ClientBuildError,
    PlaylistBodyReadError,
    PlaylistFetchError,
    PlaylistHTTPStatusError,
    PlaylistNetworkError,
)
from iptv_backend.services.m3u_parser import M3UParser
from iptv_backend.services.playlist_fetcher import fetch_bytes, fetch_playlist

PLAYLIST = (
    '#EXTM3U\n'
    '#EXTINF:-1 tvg-id="bbc1" group-title="News",BBC One\n'
    'http://stream.example/bbc1.m3u8\n'
)


class BrokenStream(httpx.AsyncByteStream):
    """Body that dies half way through."""

    async def __aiter__(self):
        yield b"#EXTM3U\n"
        raise httpx.ReadError("connection reset by peer")


def _transport(response=None, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        return response if response is not None else httpx.Response(200, content=PLAYLIST.encode())
    return httpx.MockTransport(handler)


class TestFetchPlaylist:
    """Downloading playlist text"""

    @pytest.mark.asyncio
    async def test_returns_body_text(self):
        text = await fetch_playlist("http://example.com/list.m3u", transport=_transport())
        assert text == PLAYLIST

    @pytest.mark.asyncio
    async def test_sends_default_user_agent(self):
        seen = []
        await fetch_playlist("http://example.com/list.m3u", transport=_transport(seen=seen))

        assert seen[0].headers["User-Agent"] == DEFAULT_USER_AGENT

    @pytest.mark.asyncio
    async def test_custom_headers_override(self):
        """Per-playlist headers replace the defaults; empty ones are skipped"""
        seen = []
        await fetch_playlist(
            "http://example.com/list.m3u",
            user_agent="Base/1.0",
            headers={"User-Agent": "VLC/3.0", "Referer": "http://portal.example/", "X-Empty": None},
            transport=_transport(seen=seen),
        )

        assert seen[0].headers["User-Agent"] == "VLC/3.0"
        assert seen[0].headers["Referer"] == "http://portal.example/"
        assert "X-Empty" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_progress_callback(self):
        """Progress ends at the full content length"""
        calls = []
        await fetch_playlist(
            "http://example.com/list.m3u",
            progress_callback=lambda done, total: calls.append((done, total)),
            transport=_transport(),
        )

        size = len(PLAYLIST.encode())
        assert calls[-1] == (size, size)

    @pytest.mark.asyncio
    async def test_decodes_declared_charset(self):
        response = httpx.Response(
            200,
            content='#EXTINF:-1,Télé\nhttp://a/1\n'.encode("latin-1"),
            headers={"Content-Type": "audio/x-mpegurl; charset=iso-8859-1"},
        )
        text = await fetch_playlist("http://example.com/list.m3u", transport=_transport(response))

        assert "Télé" in text

    @pytest.mark.asyncio
    async def test_http_status_error(self):
        with pytest.raises(PlaylistHTTPStatusError) as exc_info:
            await fetch_playlist("http://example.com/list.m3u", transport=_transport(httpx.Response(404)))

        assert exc_info.value.status_code == 404
        assert str(exc_info.value) == "HTTP 404: Not Found"

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PlaylistNetworkError, match="Failed to fetch URL"):
            await fetch_playlist("http://example.com/list.m3u", transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(PlaylistNetworkError):
            await fetch_playlist("http://example.com/list.m3u", transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_body_read_error(self):
        response = httpx.Response(200, stream=BrokenStream())

        with pytest.raises(PlaylistBodyReadError, match="Failed to read response"):
            await fetch_playlist("http://example.com/list.m3u", transport=_transport(response))

    @pytest.mark.asyncio
    async def test_client_build_error(self):
        with pytest.raises(ClientBuildError):
            await fetch_playlist("http://example.com/list.m3u", user_agent="Tëst/1.0", transport=_transport())

    @pytest.mark.asyncio
    async def test_errors_share_base_class(self):
        with pytest.raises(PlaylistFetchError):
            await fetch_playlist("http://example.com/list.m3u", transport=_transport(httpx.Response(500)))

    @pytest.mark.asyncio
    async def test_no_retry(self):
        """A failing request is attempted exactly once"""
        seen = []
        with pytest.raises(PlaylistHTTPStatusError):
            await fetch_playlist(
                "http://example.com/list.m3u", transport=_transport(httpx.Response(503), seen=seen)
            )
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_unknown_charset_is_body_read_error(self):
        response = httpx.Response(200, content=b"#EXTM3U\n", headers={"Content-Type": "text/plain; charset=klingon"})

        with pytest.raises(PlaylistBodyReadError):
            await fetch_playlist("http://example.com/list.m3u", transport=_transport(response))


class TestFetchBytes:
    """Raw downloads used for guide documents"""

    @pytest.mark.asyncio
    async def test_returns_raw_body_and_charset(self):
        body = b"\x1f\x8b\x08\x00binary"
        response = httpx.Response(200, content=body, headers={"Content-Type": "application/xml; charset=utf-8"})

        data, charset = await fetch_bytes("http://example.com/guide.xml.gz", transport=_transport(response))

        assert data == body
        assert charset == "utf-8"

    @pytest.mark.asyncio
    async def test_status_error(self):
        with pytest.raises(PlaylistHTTPStatusError):
            await fetch_bytes("http://example.com/guide.xml", transport=_transport(httpx.Response(500)))


class TestParseFromUrl:
    """Fetch followed by parse"""

    @pytest.mark.asyncio
    async def test_parse_from_url(self, monkeypatch):
        monkeypatch.setenv("IPTV_USER_AGENT", "Configured/2.0")
        seen = []

        playlist = await M3UParser.parse_from_url(
            "http://example.com/lists/news.m3u",
            config=Config(),
            transport=_transport(seen=seen),
        )

        assert playlist.name == "news"
        assert playlist.source == "http://example.com/lists/news.m3u"
        assert [ch.epg_id for ch in playlist.channels] == ["bbc1"]
        assert seen[0].headers["User-Agent"] == "Configured/2.0"

    @pytest.mark.asyncio
    async def test_fetch_errors_propagate(self):
        with pytest.raises(PlaylistHTTPStatusError):
            await M3UParser.parse_from_url(
                "http://example.com/lists/news.m3u", transport=_transport(httpx.Response(403))
            )
