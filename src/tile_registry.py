#!/usr/bin/env python3
"""
Tile Source Registry - Main Entry Point
Loads the source configuration, initializes every concrete and virtual
source and prints the source listing, optionally fetching one tile.
"""

import argparse
import asyncio
import json
import logging
import os
import sys

# Add src directory to Python path
current_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, current_dir)

from exceptions.tile_source_exceptions import TileSourceException
from infrastructure.logging import LoggingManager
from services.config_service import ConfigService
from services.source_registry import SourceRegistry
from services.tile_fetch_service import TileFetchService


logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Initialize tile sources and list them")
    parser.add_argument('-c', '--config', default='config.json', help="Configuration file")
    parser.add_argument('-u', '--public-url', default=None, help="Public URL of the tile server")
    parser.add_argument('--source', help="Source to fetch a tile from")
    parser.add_argument('--tile', help="Tile to fetch, as z/x/y")
    parser.add_argument('-o', '--output', help="File receiving the fetched tile")
    return parser.parse_args(argv)


def parse_tile(value: str):
    try:
        z, x, y = (int(part) for part in value.split('/'))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid tile '{value}', expected z/x/y")
    return z, x, y


async def run(args: argparse.Namespace) -> int:
    config_service = ConfigService()
    raw_config = config_service.load_raw(args.config)
    LoggingManager.setup_logging(raw_config)
    
    config = config_service.parse_config(raw_config, os.path.dirname(os.path.abspath(args.config)),
                                         public_url=args.public_url)
    
    registry = SourceRegistry(config.options)
    await registry.initialize(config)
    
    try:
        if args.tile:
            if not args.source:
                logger.error("--tile requires --source")
                return 2
            
            z, x, y = parse_tile(args.tile)
            tile = await TileFetchService(registry).fetch(args.source, z, x, y)
            if tile is None:
                print(f"Tile {z}/{x}/{y} does not exist in '{args.source}'")
                return 1
            
            if args.output:
                with open(args.output, 'wb') as f:
                    f.write(tile.data)
            print(json.dumps({'bytes': len(tile.data), 'headers': tile.headers}, indent=2))
            return 0
        
        print("Available sources:")
        for source_id in registry.list_sources():
            info = registry.get_source_info(source_id)
            tilejson = info['tilejson']
            kind = 'virtual' if info['virtual'] else 'concrete'
            print(f"  {source_id} ({kind})")
            print(f"      Bounds: {tilejson.get('bounds')}")
            print(f"      Zoom: {tilejson.get('minzoom')}-{tilejson.get('maxzoom')}")
            if info['virtual']:
                members = ', '.join(f"{m['id']}[{m['minzoom']}-{m['maxzoom']}]" for m in info['members'])
                print(f"      Members: {members or 'none'}")
        
        for source_id, reason in registry.failed_sources.items():
            print(f"  X {source_id}: {reason}")
        
        return 0
    finally:
        registry.close()


def main():
    """Main entry point for the tile source registry"""
    args = parse_args()
    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
        sys.exit(1)
    except (TileSourceException, argparse.ArgumentTypeError) as e:
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
