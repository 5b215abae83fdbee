import asyncio
import logging
import sqlite3
from typing import Dict, Any, Optional

from adapters.base_adapter import BaseAdapter
from exceptions.tile_source_exceptions import ArchiveError, ConfigurationError
from interfaces.tile_archive import ArchiveIndexRange
from models.source import TileData
from utils.file_utils import FileUtils
from utils.mbtiles_utils import MBTilesUtils
from utils.tile_calculator import TileCalculator


logger = logging.getLogger(__name__)


class MBTilesAdapter(BaseAdapter):
    """Adapter for MBTiles archives.

    Every call opens its own read-only SQLite connection in a worker thread,
    so concurrent queries against one archive are safe.
    """
    
    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.file_path = config.get('path', '')
        self._layout: Optional[str] = None
    
    def validate_config(self) -> None:
        """Validate adapter configuration"""
        if not self.file_path:
            raise ConfigurationError(f"No MBTiles path configured for '{self.name}'")
        
        FileUtils.ensure_readable_file(self.file_path)
    
    async def initialize(self) -> None:
        """Check the file and detect its table layout"""
        self.validate_config()
        
        try:
            self._layout = await asyncio.to_thread(self._detect_layout)
        except sqlite3.Error as e:
            raise ConfigurationError(f"Not valid MBTiles file: {self.file_path}: {e}")
        
        if self._layout is None:
            raise ConfigurationError(f"Unsupported MBTiles format: {self.file_path}")
        
        logger.debug("Opened MBTiles '%s' (%s layout)", self.file_path, self._layout)
    
    def _detect_layout(self) -> Optional[str]:
        with MBTilesUtils.connect(self.file_path) as conn:
            return MBTilesUtils.detect_layout(conn)
    
    def _require_layout(self) -> str:
        if self._layout is None:
            raise ArchiveError(f"MBTiles archive '{self.name}' is not initialized", self.name)
        return self._layout
    
    async def get_info(self) -> Dict[str, Any]:
        """Get MBTiles metadata"""
        self._require_layout()
        
        def read() -> Dict[str, Any]:
            with MBTilesUtils.connect(self.file_path) as conn:
                return MBTilesUtils.read_metadata(conn)
        
        try:
            return await asyncio.to_thread(read)
        except (sqlite3.Error, ValueError) as e:
            raise ArchiveError(f"Failed to read metadata of '{self.name}': {e}", self.name) from e
    
    async def get_index_range(self, zoom: int) -> Optional[ArchiveIndexRange]:
        """Get column/row range at zoom in TMS numbering"""
        layout = self._require_layout()
        
        def query() -> Optional[ArchiveIndexRange]:
            with MBTilesUtils.connect(self.file_path) as conn:
                return MBTilesUtils.query_index_range(conn, layout, zoom)
        
        try:
            return await asyncio.to_thread(query)
        except sqlite3.Error as e:
            raise ArchiveError(f"Cannot get bounds of '{self.name}' at zoom {zoom}: {e}", self.name) from e
    
    async def get_tile(self, zoom: int, x: int, y: int) -> Optional[TileData]:
        """Get tile data for XYZ coordinates"""
        layout = self._require_layout()
        
        if zoom < 0 or x < 0 or y < 0 or x >= (1 << zoom) or y >= (1 << zoom):
            return None
        
        # MBTiles rows are TMS
        tms_y = TileCalculator.flip_y(y, zoom)
        
        def query() -> Optional[bytes]:
            with MBTilesUtils.connect(self.file_path) as conn:
                return MBTilesUtils.query_tile(conn, layout, zoom, x, tms_y)
        
        try:
            tile_data = await asyncio.to_thread(query)
        except sqlite3.Error as e:
            raise ArchiveError(f"Failed to get tile {zoom}/{x}/{y} from '{self.name}': {e}", self.name) from e
        
        if tile_data is None:
            return None
        
        return TileData(data=tile_data, headers=MBTilesUtils.tile_headers(tile_data))
