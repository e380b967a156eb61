# Models package
from .channel import Channel
from .playlist import Playlist
