import asyncio
import json
import os
import sqlite3
import sys
from typing import Dict, Optional, Tuple

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from exceptions.tile_source_exceptions import ArchiveError
from interfaces.tile_archive import ITileArchive
from models.source import TileData


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"tile"


class InFlightCounter:
    """Tracks how many range queries are running at the same time"""

    def __init__(self):
        self.current = 0
        self.peak = 0

    def enter(self):
        self.current += 1
        self.peak = max(self.peak, self.current)

    def leave(self):
        self.current -= 1


class FakeArchive(ITileArchive):
    """In-memory archive; ranges are TMS (min_col, min_row, max_col, max_row) per zoom"""

    def __init__(self, name: str, ranges: Optional[Dict[int, Optional[Tuple[int, int, int, int]]]] = None,
                 tiles: Optional[Dict[Tuple[int, int, int], bytes]] = None,
                 info: Optional[Dict] = None, failing_zooms=(), slow_zooms=(), tile_error: bool = False,
                 counter: Optional[InFlightCounter] = None, query_delay: float = 0):
        self.name = name
        self.ranges = ranges or {}
        self.tiles = tiles or {}
        self.info = info or {}
        self.failing_zooms = set(failing_zooms)
        self.slow_zooms = set(slow_zooms)
        self.tile_error = tile_error
        self.counter = counter or InFlightCounter()
        self.query_delay = query_delay
        self.range_calls = []
        self.tile_calls = []
        self.closed = False

    def get_name(self) -> str:
        return self.name

    async def get_info(self):
        return dict(self.info)

    async def get_index_range(self, zoom):
        self.range_calls.append(zoom)
        self.counter.enter()
        try:
            await asyncio.sleep(self.query_delay)
            if zoom in self.slow_zooms:
                await asyncio.sleep(5)
        finally:
            self.counter.leave()
        if zoom in self.failing_zooms:
            raise ArchiveError(f"Cannot get bounds at zoom {zoom}", self.name)
        return self.ranges.get(zoom)

    async def get_tile(self, zoom, x, y):
        self.tile_calls.append((zoom, x, y))
        if self.tile_error:
            raise ArchiveError(f"Failed to get tile {zoom}/{x}/{y}", self.name)
        data = self.tiles.get((zoom, x, y))
        if data is None:
            return None
        return TileData(data=data, headers={'Content-Type': 'image/png'})

    def close(self):
        self.closed = True


def xyz_range_as_tms(zoom, min_x, min_y, max_x, max_y):
    """TMS archive range whose XYZ conversion is the given rectangle"""
    n = (1 << zoom) - 1
    return (min_x, n - max_y, max_x, n - min_y)


def write_mbtiles(path, metadata: Dict[str, str], tiles: Dict[Tuple[int, int, int], bytes],
                  layout: str = 'tiles') -> str:
    """Create an MBTiles file; tiles are keyed by (zoom, column, tms_row)"""
    with sqlite3.connect(str(path)) as conn:
        conn.execute("CREATE TABLE metadata (name TEXT, value TEXT)")
        if layout == 'tiles':
            conn.execute("CREATE TABLE tiles (zoom_level INTEGER, tile_column INTEGER, "
                         "tile_row INTEGER, tile_data BLOB)")
            for (z, x, y), data in tiles.items():
                conn.execute("INSERT INTO tiles VALUES (?, ?, ?, ?)", (z, x, y, data))
        else:
            conn.execute("CREATE TABLE map (zoom_level INTEGER, tile_column INTEGER, "
                         "tile_row INTEGER, tile_id TEXT)")
            conn.execute("CREATE TABLE images (tile_id TEXT, tile_data BLOB)")
            for index, ((z, x, y), data) in enumerate(tiles.items()):
                conn.execute("INSERT INTO map VALUES (?, ?, ?, ?)", (z, x, y, str(index)))
                conn.execute("INSERT INTO images VALUES (?, ?)", (str(index), data))
        for name, value in metadata.items():
            conn.execute("INSERT INTO metadata VALUES (?, ?)", (name, value))
    return str(path)


@pytest.fixture
def mbtiles_factory(tmp_path):
    def factory(name, metadata=None, tiles=None, layout='tiles'):
        meta = {'name': name, 'format': 'png', 'minzoom': '0', 'maxzoom': '2'}
        meta.update(metadata or {})
        return write_mbtiles(tmp_path / f"{name}.mbtiles", meta, tiles or {}, layout)
    return factory


def vector_layers_json(*layer_ids):
    return json.dumps({'vector_layers': [{'id': layer_id, 'fields': {}} for layer_id in layer_ids]})
