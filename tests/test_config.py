"""Tests for config.py"""

import logging
from pathlib import Path

from iptv_backend.config import Config, DEFAULT_USER_AGENT


class TestConfig:
    def test_defaults(self, monkeypatch):
        for name in ["IPTV_USER_AGENT", "IPTV_PLAYLIST_TIMEOUT", "IPTV_LOGO_TIMEOUT",
                     "IPTV_DATA_DIR", "IPTV_CACHE_DIR", "IPTV_LOG_LEVEL",
                     "IPTV_EPG_TIMEOUT", "IPTV_EPG_HOURS_AHEAD"]:
            monkeypatch.delenv(name, raising=False)

        config = Config()

        assert config.USER_AGENT == DEFAULT_USER_AGENT
        assert config.PLAYLIST_TIMEOUT == 30.0
        assert config.LOGO_TIMEOUT == 10.0
        assert config.EPG_TIMEOUT == 60.0
        assert config.EPG_HOURS_AHEAD == 8
        assert config.DATA_DIR == Path.home() / ".iptv-player"
        assert config.CACHE_DIR == config.DATA_DIR / "cache" / "logos"
        assert config.LOG_LEVEL == logging.INFO

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("IPTV_USER_AGENT", "Custom/1.0")
        monkeypatch.setenv("IPTV_PLAYLIST_TIMEOUT", "5")
        monkeypatch.setenv("IPTV_DATA_DIR", str(tmp_path))
        monkeypatch.delenv("IPTV_CACHE_DIR", raising=False)
        monkeypatch.setenv("IPTV_LOG_LEVEL", "debug")

        config = Config()

        assert config.USER_AGENT == "Custom/1.0"
        assert config.PLAYLIST_TIMEOUT == 5.0
        assert config.CACHE_DIR == tmp_path / "cache" / "logos"
        assert config.LOG_LEVEL == logging.DEBUG

    def test_unknown_log_level(self, monkeypatch):
        monkeypatch.setenv("IPTV_LOG_LEVEL", "chatty")
        assert Config().LOG_LEVEL == logging.INFO

    def test_check_directories(self, monkeypatch, tmp_path):
        monkeypatch.setenv("IPTV_DATA_DIR", str(tmp_path / "data"))
        monkeypatch.setenv("IPTV_CACHE_DIR", str(tmp_path / "logos"))

        Config().check_directories()

        assert (tmp_path / "data").is_dir()
        assert (tmp_path / "logos").is_dir()
