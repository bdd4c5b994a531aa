"""
CatFinder - Main Entry Point

Terminal front end for the swipe deck: browse cats, warm the image cache,
and manage local data.
"""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from core.errors import CatFinderError
from core.events import EventType
from core.logging.logger import get_logger, setup_logging
from core.settings.settings_manager import SettingsManager
from engine.deck_engine import DeckEngine
from sources.favorites_export import export_favorites
from versioning import APP_NAME, APP_VERSION

logger = get_logger(__name__)

QUIT_KEYS = ('q', 'quit', 'exit')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="catfinder", description=f"{APP_NAME} - swipe through random cats")
    parser.add_argument('--version', action='version', version=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument('--debug', '-d', action='store_true', help="debug logging with console output")
    parser.add_argument('--verbose', '-v', action='store_true', help="high-volume debug logging")
    parser.add_argument('--settings', type=Path, default=None, help="settings INI file")

    sub = parser.add_subparsers(dest='command')

    sub.add_parser('browse', help="interactive swipe loop (default)")

    prefetch = sub.add_parser('prefetch', help="fill the deck and warm the image cache")
    prefetch.add_argument('--count', type=int, default=None, help="deck depth to fill (default: settings)")

    clear = sub.add_parser('clear-cache', help="drop cached images")
    which = clear.add_mutually_exclusive_group()
    which.add_argument('--memory', action='store_const', dest='tier', const='memory')
    which.add_argument('--disk', action='store_const', dest='tier', const='disk')
    which.add_argument('--all', action='store_const', dest='tier', const='all')

    sub.add_parser('purge', help="forget all decisions and clear both caches")

    export = sub.add_parser('export-favorites', help="write favorites.json")
    export.add_argument('path', type=Path)

    return parser


def _describe(engine: DeckEngine) -> str:
    card = engine.current
    if card is None:
        return "(no card)"
    r, g, b = engine.background_color(card)
    upcoming = engine.next.id if engine.next else "-"
    return f"{card.id}  {card.url}  bg=#{r:02x}{g:02x}{b:02x}  next={upcoming}"


def subscribe_console(engine: DeckEngine) -> List[str]:
    """Echo deck errors, connectivity flips and an emptied deck to stdout.

    Returns the subscription ids so the caller can detach them.
    """
    events = engine.events
    return [
        events.subscribe(EventType.DECK_ERROR, lambda e: print(f"! {e.data['message']}")),
        events.subscribe(
            EventType.CONNECTIVITY_CHANGED,
            lambda e: print("* back online" if e.data['connected'] else "* offline"),
        ),
        events.subscribe(
            EventType.BUFFER_CHANGED,
            lambda e: print("* deck is empty, waiting for more cats"),
            filter_fn=lambda e: e.data['length'] == 0,
        ),
    ]


async def run_browse(engine: DeckEngine) -> int:
    subscriptions = subscribe_console(engine)
    try:
        return await _browse_loop(engine)
    finally:
        for subscription_id in subscriptions:
            engine.events.unsubscribe(subscription_id)


async def _browse_loop(engine: DeckEngine) -> int:
    await engine.start()
    print("y = favorite, n = skip, r = retry, q = quit")
    while True:
        if engine.current is None:
            answer = (await asyncio.to_thread(input, "[r/q] > ")).strip().lower()
            if answer in QUIT_KEYS:
                return 0
            await engine.retry()
            continue

        print(_describe(engine))
        try:
            image = await engine.load_current_image()
            if image is not None:
                print(f"  image {image.width}x{image.height} ({image.mode})")
        except CatFinderError as e:
            print(f"  ! {e.message}")

        answer = (await asyncio.to_thread(input, "[y/n/r/q] > ")).strip().lower()
        if answer in QUIT_KEYS:
            return 0
        if answer in ('y', 'yes'):
            engine.swipe_right()
        elif answer in ('n', 'no'):
            engine.swipe_left()
        elif answer == 'r':
            await engine.retry()


async def run_prefetch(engine: DeckEngine, count: Optional[int]) -> int:
    if count is not None:
        engine.queue.depth = max(1, count)
    await engine.start()
    await engine.prefetcher.wait()
    await engine.pipeline.flush()

    stats = engine.get_stats()
    pipeline = stats['pipeline']
    print(f"deck: {stats['queue']['length']}/{stats['queue']['depth']}")
    print(
        f"memory: {pipeline['item_count']} items, {pipeline['memory_usage_mb']:.1f}MB, "
        f"network fetches: {pipeline['network_fetches']}, disk hits: {pipeline['disk_hits']}"
    )
    disk = engine.pipeline.disk.get_stats()
    print(f"disk: {disk['file_count']} files, {disk['size_mb']:.1f}MB in {disk['cache_dir']}")
    if engine.error_message:
        print(f"! {engine.error_message}")
        return 1
    return 0


async def run_clear_cache(engine: DeckEngine, tier: Optional[str]) -> int:
    tier = tier or 'all'
    if tier == 'memory':
        engine.pipeline.clear_memory()
    elif tier == 'disk':
        await engine.pipeline.clear_disk()
    else:
        await engine.pipeline.clear_all()
    print(f"Cleared {tier} cache")
    return 0


async def run_purge(engine: DeckEngine) -> int:
    await engine.purge_local_data()
    print("Local data purged")
    return 0


async def run(args: argparse.Namespace, settings: SettingsManager) -> int:
    engine = DeckEngine.from_settings(settings)
    try:
        command = args.command or 'browse'
        if command == 'browse':
            return await run_browse(engine)
        if command == 'prefetch':
            return await run_prefetch(engine, args.count)
        if command == 'clear-cache':
            return await run_clear_cache(engine, args.tier)
        if command == 'purge':
            return await run_purge(engine)
        if command == 'export-favorites':
            ok = export_favorites(engine.store, args.path)
            print(f"Exported favorites to {args.path}" if ok else f"Export to {args.path} failed")
            return 0 if ok else 1
        logger.error(f"Unknown command: {command}")
        return 2
    finally:
        await engine.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug, verbose=args.verbose)

    logger.info("=" * 60)
    logger.info(f"{APP_NAME} {APP_VERSION} starting ({args.command or 'browse'})")
    logger.info("=" * 60)

    settings = SettingsManager(args.settings)
    try:
        return asyncio.run(run(args, settings))
    except (KeyboardInterrupt, EOFError):
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
