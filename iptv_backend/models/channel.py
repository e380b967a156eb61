"""Channel model for IPTV channels."""
from dataclasses import dataclass
from typing import Optional

from ..identity import generate_id


@dataclass(frozen=True)
class Channel:
    """Represents one playlist entry.

    ``id`` depends only on ``name`` and ``url`` (see ``generate_id``), so the
    same entry keeps its id across re-parses of a playlist.
    """

    id: str
    name: str
    url: str
    logo: Optional[str] = None
    group: Optional[str] = None
    epg_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert channel to dictionary for serialization."""
        data = {
            "id": self.id,
            "name": self.name,
            "url": self.url,
        }
        # Optional fields are left out entirely when absent
        if self.logo is not None:
            data["logo"] = self.logo
        if self.group is not None:
            data["group"] = self.group
        if self.epg_id is not None:
            data["epgId"] = self.epg_id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Channel":
        """Create channel from dictionary."""
        name = data.get("name") or ""
        url = data.get("url") or ""
        return cls(
            id=data.get("id") or generate_id(name, url),
            name=name,
            url=url,
            logo=data.get("logo"),
            group=data.get("group"),
            epg_id=data.get("epgId"),
        )
