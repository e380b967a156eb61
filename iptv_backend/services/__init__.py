# Services package
from .m3u_parser import M3UParser, parse_m3u
from .playlist_fetcher import fetch_bytes, fetch_playlist
from .image_cache import ImageCache, get_image_cache
from .epg import EPGProgram, EPGService
from .state_manager import StateManager, SavedPlaylist
