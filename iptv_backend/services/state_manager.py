"""Persisted user state: favorites, history, saved playlists and channel cache."""
import json
import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional
from urllib.parse import urlparse

from ..config import Config
from ..errors import StateError
from ..models.channel import Channel

logger = logging.getLogger(__name__)

MAX_RECENTLY_WATCHED = 10


@dataclass
class SavedPlaylist:
    """A playlist source remembered between sessions."""
    id: str
    name: str
    url: str
    added_at: int  # unix milliseconds
    custom_headers: Dict[str, str] = field(default_factory=dict)  # User-Agent, Referer
    epg_url: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SavedPlaylist":
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            url=data.get("url", ""),
            added_at=int(data.get("added_at", 0)),
            custom_headers=dict(data.get("custom_headers") or {}),
            epg_url=data.get("epg_url"),
        )


def _default_settings() -> dict:
    return {
        "favorites": [],
        "recently_watched": [],
        "playlists": [],
        "last_playlist_url": None,
    }


def _normalize_settings(data: dict) -> dict:
    """Defaults overlaid with the well-typed values of ``data``."""
    settings = _default_settings()
    for key, default in settings.items():
        value = data.get(key, default)
        if key == "last_playlist_url":
            ok = value is None or isinstance(value, str)
        else:
            ok = isinstance(value, list)
        if ok:
            settings[key] = value
        else:
            logger.warning(f"Ignoring invalid {key!r} setting: {value!r}")
    settings["playlists"] = [p for p in settings["playlists"] if isinstance(p, dict)]
    return settings


class StateManager:
    """Manages application state and persistence."""

    def __init__(self, data_dir: Optional[str] = None, config: Optional[Config] = None):
        """Initialize state manager under ``data_dir`` or the configured DATA_DIR."""
        if data_dir:
            self.data_dir = Path(data_dir)
        else:
            self.data_dir = (config or Config()).DATA_DIR

        self.data_dir.mkdir(parents=True, exist_ok=True)

        self._settings_file = self.data_dir / "settings.json"
        self._channels_cache_dir = self.data_dir / "cache" / "channels"
        self._channels_cache_dir.mkdir(parents=True, exist_ok=True)

        self._settings: dict = _default_settings()
        self._on_change: List[Callable] = []

        self._load_settings()

    def _load_settings(self):
        """Load persisted settings, falling back to defaults if unreadable."""
        if not self._settings_file.exists():
            return
        try:
            data = json.loads(self._settings_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable settings file {self._settings_file}: {e}")
            return
        if not isinstance(data, dict):
            logger.warning(f"Ignoring settings file {self._settings_file}: not a JSON object")
            return
        self._settings = _normalize_settings(data)

    def _save_settings(self):
        """Save settings to file."""
        self._settings_file.write_text(json.dumps(self._settings, indent=2), encoding="utf-8")
        for callback in self._on_change:
            callback()

    def on_change(self, callback: Callable):
        """Register callback for settings changes."""
        self._on_change.append(callback)

    # Favorites
    def toggle_favorite(self, channel_id: str) -> bool:
        """Toggle favorite status of a channel; returns the new status."""
        favorites = self._settings["favorites"]
        if channel_id in favorites:
            favorites.remove(channel_id)
            is_favorite = False
        else:
            favorites.append(channel_id)
            is_favorite = True
        self._save_settings()
        return is_favorite

    def is_favorite(self, channel_id: str) -> bool:
        """Check if a channel is a favorite."""
        return channel_id in self._settings["favorites"]

    def get_favorites(self) -> List[str]:
        """Get all favorite channel ids."""
        return list(self._settings["favorites"])

    # Recently watched
    def add_to_recently_watched(self, channel_id: str):
        """Move a channel to the front of the history."""
        recent = [cid for cid in self._settings["recently_watched"] if cid != channel_id]
        recent.insert(0, channel_id)
        self._settings["recently_watched"] = recent[:MAX_RECENTLY_WATCHED]
        self._save_settings()

    def get_recently_watched(self) -> List[str]:
        """Get recently watched channel ids, most recent first."""
        return list(self._settings["recently_watched"])

    # Saved playlists
    def save_playlist(self, url: str, name: Optional[str] = None) -> SavedPlaylist:
        """Remember a playlist URL."""
        now = int(time.time() * 1000)
        taken = {p.get("id") for p in self._settings["playlists"]}
        playlist_id = now
        while str(playlist_id) in taken:
            playlist_id += 1
        playlist = SavedPlaylist(
            id=str(playlist_id),
            name=name or urlparse(url).hostname or url,
            url=url,
            added_at=now,
        )
        self._settings["playlists"].append(playlist.to_dict())
        self._settings["last_playlist_url"] = url
        self._save_settings()
        return playlist

    def remove_playlist(self, playlist_id: str):
        """Forget a saved playlist."""
        self._settings["playlists"] = [
            p for p in self._settings["playlists"] if p.get("id") != playlist_id
        ]
        self._save_settings()

    def update_playlist_headers(
        self,
        playlist_id: str,
        user_agent: Optional[str] = None,
        referer: Optional[str] = None,
    ):
        """Set the custom request headers used when fetching a playlist."""
        headers = {}
        if user_agent:
            headers["User-Agent"] = user_agent
        if referer:
            headers["Referer"] = referer
        self._update_playlist(playlist_id, custom_headers=headers)

    def update_playlist_epg(self, playlist_id: str, epg_url: Optional[str] = None):
        """Set the EPG source attached to a playlist."""
        self._update_playlist(playlist_id, epg_url=epg_url)

    def _update_playlist(self, playlist_id: str, **changes):
        for p in self._settings["playlists"]:
            if p.get("id") == playlist_id:
                p.update(changes)
                self._save_settings()
                return

    def get_playlists(self) -> List[SavedPlaylist]:
        """Get all saved playlists."""
        return [SavedPlaylist.from_dict(p) for p in self._settings["playlists"]]

    def get_playlist(self, playlist_id: str) -> Optional[SavedPlaylist]:
        for playlist in self.get_playlists():
            if playlist.id == playlist_id:
                return playlist
        return None

    @property
    def last_playlist_url(self) -> Optional[str]:
        return self._settings.get("last_playlist_url")

    # Channel cache
    def _channels_cache_path(self, playlist_id: str) -> Path:
        return self._channels_cache_dir / f"playlist_{playlist_id}.json"

    def cache_channels(self, playlist_id: str, channels: List[Channel]):
        """Save the parsed channels of a playlist."""
        data = [ch.to_dict() for ch in channels]
        self._channels_cache_path(playlist_id).write_text(json.dumps(data), encoding="utf-8")

    def load_cached_channels(self, playlist_id: str) -> Optional[List[Channel]]:
        """Load cached channels, or ``None`` if there is no usable cache."""
        cache_path = self._channels_cache_path(playlist_id)
        if not cache_path.exists():
            return None
        try:
            data = json.loads(cache_path.read_text(encoding="utf-8"))
            return [Channel.from_dict(ch) for ch in data]
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring corrupt channel cache {cache_path}: {e}")
            return None

    # Export/Import
    def export_settings(self) -> str:
        """Dump all settings as JSON text."""
        return json.dumps({"settings": self._settings}, indent=2)

    def import_settings(self, json_string: str):
        """Replace settings with a previous export."""
        try:
            data = json.loads(json_string)
        except ValueError as e:
            raise StateError("Invalid settings file") from e
        if not isinstance(data, dict) or not isinstance(data.get("settings"), dict):
            raise StateError("Invalid settings file")

        self._settings = _normalize_settings(data["settings"])
        self._save_settings()
