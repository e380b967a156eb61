"""Playlist model: the parsed channels of one source."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .channel import Channel


def _matches(channel: Channel, query: str) -> bool:
    if query in channel.name.casefold():
        return True
    return bool(channel.epg_id) and query in channel.epg_id.casefold()


@dataclass
class Playlist:
    """Channels parsed from one M3U source, in source order.

    Groups are reported in the order they first appear in the playlist.
    """

    name: str
    source: str  # URL or file path
    channels: List[Channel] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    def get_groups(self) -> List[str]:
        return list(self.group_counts())

    def group_counts(self) -> Dict[str, int]:
        """Number of channels per group, keyed in first-seen order."""
        counts: Dict[str, int] = {}
        for channel in self.channels:
            if channel.group:
                counts[channel.group] = counts.get(channel.group, 0) + 1
        return counts

    def get_channels_by_group(self, group: Optional[str]) -> List[Channel]:
        """Channels of ``group``; ``None`` selects the ungrouped ones."""
        if group is None:
            return [ch for ch in self.channels if not ch.group]
        return [ch for ch in self.channels if ch.group == group]

    def get_channel(self, channel_id: str) -> Optional[Channel]:
        """First channel carrying ``channel_id``."""
        return next((ch for ch in self.channels if ch.id == channel_id), None)

    def search_channels(self, query: str) -> List[Channel]:
        """Case-insensitive match on the channel name or its guide id."""
        return self.filter(query=query)

    def filter(self, group: Optional[str] = None, query: Optional[str] = None) -> List[Channel]:
        """Apply the group and search filters together."""
        channels = self.get_channels_by_group(group) if group else list(self.channels)
        query = (query or "").strip().casefold()
        if query:
            channels = [ch for ch in channels if _matches(ch, query)]
        return channels

    def get_epg_ids(self) -> List[str]:
        """Distinct guide ids (``tvg-id``) in source order."""
        return list(dict.fromkeys(ch.epg_id for ch in self.channels if ch.epg_id))

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "source": self.source,
            "channels": [ch.to_dict() for ch in self.channels],
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Playlist":
        return cls(
            name=data.get("name") or "Unknown Playlist",
            source=data.get("source") or "",
            channels=[Channel.from_dict(ch) for ch in data.get("channels") or []],
            metadata=dict(data.get("metadata") or {}),
        )
