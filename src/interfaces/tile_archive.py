from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, Tuple

from models.source import TileData


# (min_column, min_row, max_column, max_row) in the archive's own row convention
ArchiveIndexRange = Tuple[int, int, int, int]


class ITileArchive(ABC):
    """Read-only access to one tile archive"""
    
    @abstractmethod
    def get_name(self) -> str:
        """Get archive name"""
        pass
    
    @abstractmethod
    async def get_info(self) -> Dict[str, Any]:
        """Get archive metadata"""
        pass
    
    @abstractmethod
    async def get_index_range(self, zoom: int) -> Optional[ArchiveIndexRange]:
        """Get the column/row range present at a zoom level, None if the zoom is empty.

        Rows are reported in the archive's on-disk convention (TMS, row 0 = south).
        """
        pass
    
    @abstractmethod
    async def get_tile(self, zoom: int, x: int, y: int) -> Optional[TileData]:
        """Get tile data for XYZ coordinates, None if the tile does not exist"""
        pass
    
    def close(self) -> None:
        """Release archive resources"""
        pass
