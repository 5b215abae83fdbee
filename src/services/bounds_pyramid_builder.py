import asyncio
import logging
from typing import Dict, Optional

from exceptions.tile_source_exceptions import ArchiveError, ValidationError
from interfaces.tile_archive import ArchiveIndexRange, ITileArchive
from models.bounds_pyramid import BoundsPyramid, IndexBounds
from utils.tile_calculator import TileCalculator


logger = logging.getLogger(__name__)


class BoundsPyramidBuilder:
    """Builds the per-zoom index bounds table of an archive"""

    def __init__(self, query_timeout: Optional[float] = None):
        self.query_timeout = query_timeout

    @staticmethod
    def to_index_bounds(index_range: Optional[ArchiveIndexRange], zoom: int) -> Optional[IndexBounds]:
        """Convert a TMS column/row range to XYZ index bounds.

        Flipping reverses row order, so the XYZ minimum comes from the TMS
        maximum and vice versa.
        """
        if index_range is None:
            return None

        min_column, min_row, max_column, max_row = index_range
        return IndexBounds(
            min_x=min_column,
            min_y=TileCalculator.flip_y(max_row, zoom),
            max_x=max_column,
            max_y=TileCalculator.flip_y(min_row, zoom)
        )

    async def _query_zoom(self, archive: ITileArchive, zoom: int) -> Optional[IndexBounds]:
        try:
            if self.query_timeout is None:
                index_range = await archive.get_index_range(zoom)
            else:
                index_range = await asyncio.wait_for(archive.get_index_range(zoom), self.query_timeout)
        except asyncio.TimeoutError as e:
            raise ArchiveError(
                f"Bounds query of '{archive.get_name()}' at zoom {zoom} timed out after {self.query_timeout}s",
                archive.get_name()
            ) from e

        return self.to_index_bounds(index_range, zoom)

    async def build(self, archive: ITileArchive, min_zoom: int, max_zoom: int) -> BoundsPyramid:
        """Query every zoom concurrently and collect the results into a pyramid"""
        if min_zoom > max_zoom:
            raise ValidationError(f"Invalid zoom range {min_zoom}-{max_zoom} for '{archive.get_name()}'")

        zooms = list(range(min_zoom, max_zoom + 1))
        results = await asyncio.gather(*(self._query_zoom(archive, zoom) for zoom in zooms))

        entries: Dict[int, Optional[IndexBounds]] = dict(zip(zooms, results))
        pyramid = BoundsPyramid(min_zoom, max_zoom, entries)

        empty = [zoom for zoom in zooms if entries[zoom] is None]
        if empty:
            logger.debug("Archive '%s' has no tiles at zoom %s", archive.get_name(), empty)

        return pyramid
