import hashlib
import json
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


# Table layouts understood by the reader
LAYOUT_TILES = 'tiles'
LAYOUT_MAP_IMAGES = 'map_images'

_INTEGER_FIELDS = ('minzoom', 'maxzoom')
_FLOAT_LIST_FIELDS = ('bounds', 'center')


class MBTilesUtils:
    """Utility class for MBTiles operations"""

    @staticmethod
    def connect(file_path: str) -> closing:
        """Open a read-only connection, closed when the with-block exits"""
        uri = Path(file_path).resolve().as_uri() + '?mode=ro'
        return closing(sqlite3.connect(uri, uri=True, check_same_thread=False))

    @staticmethod
    def detect_layout(conn: sqlite3.Connection) -> Optional[str]:
        """Detect how tiles are stored in the database"""
        cursor = conn.execute("SELECT name FROM sqlite_master WHERE type IN ('table', 'view')")
        tables = {row[0] for row in cursor.fetchall()}

        if 'metadata' not in tables:
            return None

        # Standard MBTiles format (a view over map/images is reported here too)
        if 'tiles' in tables:
            return LAYOUT_TILES

        if 'images' in tables and 'map' in tables:
            return LAYOUT_MAP_IMAGES

        return None

    @staticmethod
    def read_metadata(conn: sqlite3.Connection) -> Dict[str, Any]:
        """Read the metadata table into typed values.

        Numeric zoom fields become ints, bounds and center become float lists
        and the JSON blob (vector_layers and friends) is merged in.
        """
        metadata: Dict[str, Any] = {}
        for name, value in conn.execute("SELECT name, value FROM metadata").fetchall():
            metadata[name] = value

        blob = metadata.pop('json', None)
        if blob:
            try:
                metadata.update(json.loads(blob))
            except ValueError as e:
                raise ValueError(f"Invalid json metadata field: {e}")

        for key in _INTEGER_FIELDS:
            if key in metadata and metadata[key] is not None:
                metadata[key] = int(metadata[key])

        for key in _FLOAT_LIST_FIELDS:
            value = metadata.get(key)
            if isinstance(value, str):
                parts = [float(part) for part in value.split(',') if part.strip()]
                metadata[key] = parts

        if 'center' in metadata and len(metadata['center']) == 3:
            metadata['center'][2] = int(metadata['center'][2])

        return metadata

    @staticmethod
    def query_index_range(conn: sqlite3.Connection, layout: str,
                          zoom: int) -> Optional[Tuple[int, int, int, int]]:
        """Return (min_column, min_row, max_column, max_row) at zoom, None when empty"""
        table = 'tiles' if layout == LAYOUT_TILES else 'map'
        row = conn.execute(
            f"""SELECT MIN(tile_column), MIN(tile_row), MAX(tile_column), MAX(tile_row)
                FROM {table}
                WHERE zoom_level = ?""",
            (zoom,)
        ).fetchone()

        # Aggregates over zero rows come back as NULL
        if row is None or any(value is None for value in row):
            return None

        return int(row[0]), int(row[1]), int(row[2]), int(row[3])

    @staticmethod
    def query_tile(conn: sqlite3.Connection, layout: str,
                   zoom: int, column: int, row: int) -> Optional[bytes]:
        """Fetch raw tile bytes using TMS row numbering"""
        if layout == LAYOUT_TILES:
            cursor = conn.execute(
                "SELECT tile_data FROM tiles WHERE zoom_level = ? AND tile_column = ? AND tile_row = ?",
                (zoom, column, row)
            )
        else:
            cursor = conn.execute(
                """SELECT i.tile_data
                   FROM images i
                   JOIN map m ON i.tile_id = m.tile_id
                   WHERE m.zoom_level = ? AND m.tile_column = ? AND m.tile_row = ?""",
                (zoom, column, row)
            )

        result = cursor.fetchone()
        return bytes(result[0]) if result and result[0] is not None else None

    @staticmethod
    def tile_headers(tile_data: bytes) -> Dict[str, str]:
        """Build response headers from the tile payload signature"""
        headers: Dict[str, str] = {}

        if tile_data[:8] == b'\x89PNG\r\n\x1a\n':
            headers['Content-Type'] = 'image/png'
        elif tile_data[:3] == b'\xff\xd8\xff':
            headers['Content-Type'] = 'image/jpeg'
        elif tile_data[:6] in (b'GIF87a', b'GIF89a'):
            headers['Content-Type'] = 'image/gif'
        elif tile_data[:4] == b'RIFF' and tile_data[8:12] == b'WEBP':
            headers['Content-Type'] = 'image/webp'
        else:
            headers['Content-Type'] = 'application/x-protobuf'
            if tile_data[:2] == b'\x1f\x8b':
                headers['Content-Encoding'] = 'gzip'
            elif len(tile_data) >= 2 and tile_data[0] == 0x78 and tile_data[1] in (0x01, 0x9C, 0xDA):
                headers['Content-Encoding'] = 'deflate'

        headers['ETag'] = f'W/"{hashlib.md5(tile_data).hexdigest()}"'
        return headers
