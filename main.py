#!/usr/bin/env python3
"""IPTV backend - fetch, parse and inspect M3U playlists from the command line."""
import argparse
import asyncio
import json
import os
import sys

import aiofiles

from iptv_backend.config import Config
from iptv_backend.errors import EPGError, PlaylistFetchError, PlaylistParseError
from iptv_backend.services import EPGService, ImageCache, M3UParser


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Parse an extended M3U playlist.")
    parser.add_argument("source", help="playlist URL or local file path")
    parser.add_argument("--json", action="store_true", help="print channels as JSON")
    parser.add_argument("--group", help="only show channels of this group")
    parser.add_argument("--search", help="only show channels whose name or guide id contains this text")
    parser.add_argument("--user-agent", help="override the User-Agent header")
    parser.add_argument("--referer", help="send a Referer header")
    parser.add_argument("--cache-logos", action="store_true", help="download channel logos into the cache")
    parser.add_argument("--epg", metavar="SOURCE", help="XMLTV guide URL or file; shows what is on now")
    return parser


async def load_guide(source, channels, headers, config: Config, logger):
    """Load the guide for ``channels``; ``None`` if it can't be had."""
    guide = EPGService(config=config)
    channel_ids = {ch.epg_id for ch in channels if ch.epg_id}
    try:
        if os.path.isfile(source):
            async with aiofiles.open(source, "rb") as f:
                guide.load_from_bytes(await f.read(), channel_ids=channel_ids)
        else:
            await guide.load_from_url(source, channel_ids=channel_ids, headers=headers)
    except (PlaylistFetchError, EPGError, OSError) as e:
        logger.error(f"Failed to load guide: {e}")
        return None
    return guide


async def run(args, config: Config) -> int:
    logger = config.setup_logging()
    headers = {"User-Agent": args.user_agent, "Referer": args.referer}

    try:
        if os.path.exists(args.source):
            playlist = await M3UParser.parse_from_file(args.source)
        else:
            playlist = await M3UParser.parse_from_url(args.source, headers=headers, config=config)
    except (PlaylistFetchError, PlaylistParseError, OSError) as e:
        logger.error(f"Failed to load playlist: {e}")
        return 1

    channels = playlist.filter(group=args.group, query=args.search)

    if args.cache_logos:
        cache = ImageCache(config=config)
        logos = sorted({ch.logo for ch in channels if ch.logo})
        results = await asyncio.gather(*(cache.get_or_download(logo) for logo in logos))
        failed = sum(1 for path in results if path is None)
        logger.info(f"Cached {len(logos) - failed}/{len(logos)} logos in {cache.cache_dir}")

    guide = await load_guide(args.epg, channels, headers, config, logger) if args.epg else None

    def now_playing(ch):
        program = guide.get_current_program(ch.epg_id) if guide is not None else None
        return program.title if program else None

    if args.json:
        data = []
        for ch in channels:
            item = ch.to_dict()
            if guide is not None:
                item["nowPlaying"] = now_playing(ch)
            data.append(item)
        print(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        for ch in channels:
            group = f" [{ch.group}]" if ch.group else ""
            title = now_playing(ch)
            on_now = f"  (now: {title})" if title else ""
            print(f"{ch.id}  {ch.name}{group}  {ch.url}{on_now}")

    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args, Config()))


if __name__ == "__main__":
    sys.exit(main())
