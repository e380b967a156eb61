"""IPTV backend - playlist parsing, channel identity and logo caching."""

__version__ = "0.1.0"
