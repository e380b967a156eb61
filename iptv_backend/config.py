"""Backend configuration read from the environment."""
import os
import sys
import logging
from pathlib import Path

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class Config:
    """Application configuration"""

    def __init__(self):
        # Network
        self.USER_AGENT = os.getenv('IPTV_USER_AGENT', DEFAULT_USER_AGENT)
        self.PLAYLIST_TIMEOUT = float(os.getenv('IPTV_PLAYLIST_TIMEOUT', '30'))
        self.LOGO_TIMEOUT = float(os.getenv('IPTV_LOGO_TIMEOUT', '10'))
        self.EPG_TIMEOUT = float(os.getenv('IPTV_EPG_TIMEOUT', '60'))
        self.EPG_HOURS_AHEAD = int(os.getenv('IPTV_EPG_HOURS_AHEAD', '8'))

        # Directories
        self.DATA_DIR = Path(os.getenv('IPTV_DATA_DIR', str(Path.home() / ".iptv-player")))
        self.CACHE_DIR = Path(os.getenv('IPTV_CACHE_DIR', str(self.DATA_DIR / "cache" / "logos")))

        # Logging
        level_name = os.getenv('IPTV_LOG_LEVEL', 'INFO').upper()
        self.LOG_LEVEL = getattr(logging, level_name, logging.INFO)

    def setup_logging(self):
        """Configure logging for the application"""
        logging.basicConfig(
            level=self.LOG_LEVEL,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=[logging.StreamHandler(sys.stderr)],
        )

        # Silence noisy third-party loggers
        logging.getLogger('httpx').setLevel(logging.WARNING)
        logging.getLogger('httpcore').setLevel(logging.WARNING)
        logging.getLogger('aiohttp').setLevel(logging.WARNING)

        return logging.getLogger(__name__)

    def check_directories(self):
        """Ensure required directories exist"""
        self.DATA_DIR.mkdir(parents=True, exist_ok=True)
        self.CACHE_DIR.mkdir(parents=True, exist_ok=True)
