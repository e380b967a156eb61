"""Programme guide: XMLTV download, parsing and now/next lookup."""
import gzip
import io
import json
import logging
import re
import time
import xml.etree.ElementTree as ET
import zlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import httpx

from ..config import Config
from ..errors import EPGParseError
from ..models.channel import Channel
from .playlist_fetcher import fetch_bytes

logger = logging.getLogger(__name__)

HOURS_AHEAD = 8
GZIP_MAGIC = b"\x1f\x8b"

_TIME_RE = re.compile(r"^(\d{14})(?:\s*([+-])(\d{2})(\d{2}))?")  # YYYYMMDDHHMMSS [+-HHMM]


@dataclass(frozen=True)
class EPGProgram:
    """One guide entry. ``start`` and ``end`` are UTC-aware datetimes."""

    channel_id: str
    title: str
    start: datetime
    end: datetime
    description: Optional[str] = None
    category: Optional[str] = None

    def is_airing(self, now: datetime) -> bool:
        return self.start <= now < self.end

    def to_dict(self) -> dict:
        data = {
            "channelId": self.channel_id,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }
        if self.description is not None:
            data["description"] = self.description
        if self.category is not None:
            data["category"] = self.category
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "EPGProgram":
        return cls(
            channel_id=data["channelId"],
            title=data.get("title") or "Unknown",
            start=_as_utc(datetime.fromisoformat(data["start"])),
            end=_as_utc(datetime.fromisoformat(data["end"])),
            description=data.get("description"),
            category=data.get("category"),
        )


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_xmltv_time(value: Optional[str]) -> Optional[datetime]:
    """Parse an XMLTV timestamp such as ``20240101060000 +0100``.

    A missing offset means UTC. Unreadable values give ``None``.
    """
    match = _TIME_RE.match(value.strip()) if value else None
    if not match:
        return None
    digits, sign, hours, minutes = match.groups()
    try:
        parsed = datetime.strptime(digits, "%Y%m%d%H%M%S")
        tz = timezone.utc
        if sign:
            offset = timedelta(hours=int(hours), minutes=int(minutes))
            tz = timezone(offset if sign == "+" else -offset)
    except ValueError:
        return None
    return parsed.replace(tzinfo=tz).astimezone(timezone.utc)


def _child_text(elem: ET.Element, tag: str) -> Optional[str]:
    child = elem.find(tag)
    if child is None or not child.text:
        return None
    return child.text.strip() or None


def parse_xmltv(
    data: bytes,
    channel_ids: Optional[Iterable[str]] = None,
    now: Optional[datetime] = None,
    hours_ahead: int = HOURS_AHEAD,
) -> Dict[str, List[EPGProgram]]:
    """Read the programmes of an XMLTV document (plain or gzipped).

    Only programmes still running at ``now`` or starting within
    ``hours_ahead`` hours are kept, optionally restricted to ``channel_ids``.
    Programmes with unreadable times are skipped. Each channel's list is
    sorted by start time.
    """
    if data[:2] == GZIP_MAGIC:
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as e:
            raise EPGParseError(f"Invalid gzip data: {e}") from e

    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    horizon = now + timedelta(hours=hours_ahead)
    wanted = set(channel_ids) if channel_ids is not None else None

    guide: Dict[str, List[EPGProgram]] = {}
    try:
        for _, elem in ET.iterparse(io.BytesIO(data), events=("end",)):
            if elem.tag != "programme":
                continue
            channel_id = (elem.get("channel") or "").strip()
            if channel_id and (wanted is None or channel_id in wanted):
                start = parse_xmltv_time(elem.get("start"))
                end = parse_xmltv_time(elem.get("stop"))
                if start and end and end > now and start <= horizon:
                    guide.setdefault(channel_id, []).append(EPGProgram(
                        channel_id=channel_id,
                        title=_child_text(elem, "title") or "Unknown",
                        start=start,
                        end=end,
                        description=_child_text(elem, "desc"),
                        category=_child_text(elem, "category"),
                    ))
            elem.clear()
    except ET.ParseError as e:
        raise EPGParseError(f"Invalid XMLTV document: {e}") from e

    for programs in guide.values():
        programs.sort(key=lambda p: p.start)
    return guide


class EPGService:
    """Guide data for the channels of a playlist.

    Programmes are keyed by XMLTV channel id, which is a channel's
    ``epg_id`` (its ``tvg-id``). The last loaded guide is written to
    ``epg_cache.json`` in the data directory and read back on start, so
    now/next lookups work before the next download.
    """

    def __init__(self, data_dir: Optional[str] = None, config: Optional[Config] = None):
        self.config = config or Config()
        self.data_dir = Path(data_dir) if data_dir is not None else self.config.DATA_DIR
        self._cache_file = self.data_dir / "epg_cache.json"
        self._programs: Dict[str, List[EPGProgram]] = {}
        self._updated_at: Optional[int] = None  # unix milliseconds

        self._load_cache()

    # Cache
    def _load_cache(self):
        if not self._cache_file.exists():
            return
        try:
            data = json.loads(self._cache_file.read_text(encoding="utf-8"))
            programs = {
                channel_id: [EPGProgram.from_dict(p) for p in entries]
                for channel_id, entries in data["epg"].items()
            }
            updated_at = data.get("timestamp")
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable guide cache {self._cache_file}: {e}")
            return
        self._programs = programs
        self._updated_at = updated_at

    def _save_cache(self):
        data = {
            "epg": {cid: [p.to_dict() for p in programs] for cid, programs in self._programs.items()},
            "timestamp": self._updated_at,
        }
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self._cache_file.write_text(json.dumps(data), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to write guide cache {self._cache_file}: {e}")

    def clear_cache(self):
        """Drop the loaded guide and its cache file."""
        self._programs = {}
        self._updated_at = None
        if self._cache_file.exists():
            self._cache_file.unlink()

    @property
    def updated_at(self) -> Optional[int]:
        """When the current guide was loaded (unix milliseconds)."""
        return self._updated_at

    @property
    def has_data(self) -> bool:
        return bool(self._programs)

    # Loading
    async def load_from_url(
        self,
        url: str,
        channel_ids: Optional[Iterable[str]] = None,
        headers: Optional[Dict[str, str]] = None,
        now: Optional[datetime] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> int:
        """Download and load an XMLTV guide; returns the programme count.

        Transport failures raise the ``PlaylistFetchError`` family, a bad
        document raises ``EPGParseError``. The previous guide is kept when
        either happens.
        """
        logger.info(f"Loading guide {url}")
        data, _ = await fetch_bytes(
            url,
            user_agent=self.config.USER_AGENT,
            timeout=self.config.EPG_TIMEOUT,
            headers=headers,
            transport=transport,
        )
        return self.load_from_bytes(data, channel_ids=channel_ids, now=now)

    def load_from_bytes(
        self,
        data: bytes,
        channel_ids: Optional[Iterable[str]] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Replace the guide with the programmes of an XMLTV document."""
        self._programs = parse_xmltv(
            data, channel_ids=channel_ids, now=now, hours_ahead=self.config.EPG_HOURS_AHEAD
        )
        self._updated_at = int(time.time() * 1000)
        self._save_cache()

        count = sum(len(programs) for programs in self._programs.values())
        logger.info(f"Loaded {count} programmes for {len(self._programs)} channels")
        return count

    # Lookup
    def get_programs(self, epg_id: Optional[str]) -> List[EPGProgram]:
        """All loaded programmes of a channel, by start time."""
        if not epg_id:
            return []
        return list(self._programs.get(epg_id, []))

    def get_current_program(self, epg_id: Optional[str], now: Optional[datetime] = None) -> Optional[EPGProgram]:
        now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
        return next((p for p in self.get_programs(epg_id) if p.is_airing(now)), None)

    def get_next_program(self, epg_id: Optional[str], now: Optional[datetime] = None) -> Optional[EPGProgram]:
        now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
        return next((p for p in self.get_programs(epg_id) if p.start > now), None)

    def now_and_next(
        self, channel: Channel, now: Optional[datetime] = None
    ) -> Tuple[Optional[EPGProgram], Optional[EPGProgram]]:
        """Current and upcoming programme of a parsed channel."""
        return (
            self.get_current_program(channel.epg_id, now),
            self.get_next_program(channel.epg_id, now),
        )
