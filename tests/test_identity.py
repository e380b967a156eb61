"""Tests for identity.py"""

import re

import pytest
import xxhash

from iptv_backend.identity import generate_id


class TestGenerateId:
    """Deterministic channel ids"""

    def test_deterministic(self):
        """Identical input gives identical ids"""
        assert generate_id("BBC One", "http://a/1") == generate_id("BBC One", "http://a/1")

    @pytest.mark.parametrize("name,url", [
        ("BBC One", "http://stream.example/bbc1.m3u8"),
        ("", ""),
        ("", "http://a/1"),
        ("Ünïcødé ✓", "http://a/ü"),
        ("x" * 10000, "http://a/" + "y" * 10000),
    ])
    def test_format(self, name, url):
        """Ids are at most 16 lowercase hex digits"""
        assert re.fullmatch(r"[0-9a-f]{1,16}", generate_id(name, url))

    def test_concatenation_without_separator(self):
        """Only the concatenated text matters"""
        assert generate_id("ab", "c") == generate_id("a", "bc")

    def test_matches_xxh64(self):
        """The id is the XXH64 digest of the UTF-8 bytes"""
        expected = xxhash.xxh64("BBC Onehttp://stream.example/bbc1.m3u8".encode("utf-8")).hexdigest()
        assert generate_id("BBC One", "http://stream.example/bbc1.m3u8") == expected[:16]

    def test_distinct_inputs(self):
        """Different channels get different ids"""
        ids = {generate_id(f"Channel {i}", f"http://a/{i}") for i in range(1000)}
        assert len(ids) == 1000

    def test_lone_surrogate(self):
        """Text that is not valid UTF-8 still hashes"""
        assert len(generate_id("\ud800", "http://a/1")) == 16
