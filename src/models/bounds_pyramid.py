from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class IndexBounds:
    """Rectangle of XYZ tile indices [min_x, min_y, max_x, max_y] at one zoom level"""
    min_x: int
    min_y: int
    max_x: int
    max_y: int
    
    def __post_init__(self):
        if self.min_x > self.max_x or self.min_y > self.max_y:
            raise ValueError(f"Inverted index bounds: {self.to_list()}")
    
    def contains(self, x: int, y: int) -> bool:
        """Check if tile indices fall inside the rectangle (inclusive)"""
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y
    
    def to_list(self) -> List[int]:
        return [self.min_x, self.min_y, self.max_x, self.max_y]


class BoundsPyramid:
    """Per-zoom index bounds of the tiles actually present in an archive.

    Holds exactly one entry per zoom in [min_zoom, max_zoom]. An entry is
    either an IndexBounds or None when the archive has no tile at that zoom.
    """
    
    def __init__(self, min_zoom: int, max_zoom: int, entries: Dict[int, Optional[IndexBounds]]):
        if min_zoom > max_zoom:
            raise ValueError(f"min_zoom {min_zoom} is greater than max_zoom {max_zoom}")
        
        expected = set(range(min_zoom, max_zoom + 1))
        if set(entries.keys()) != expected:
            raise ValueError(f"Pyramid entries must cover zoom {min_zoom}-{max_zoom} exactly")
        
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self._entries = dict(entries)
    
    def __len__(self) -> int:
        return len(self._entries)
    
    def __iter__(self):
        for zoom in range(self.min_zoom, self.max_zoom + 1):
            yield zoom, self._entries[zoom]
    
    def has_zoom(self, zoom: int) -> bool:
        return self.min_zoom <= zoom <= self.max_zoom
    
    def is_empty(self, zoom: int) -> bool:
        """True when the zoom is in range but holds no tile"""
        return self.has_zoom(zoom) and self._entries[zoom] is None
    
    def get(self, zoom: int) -> Optional[IndexBounds]:
        """Get bounds at zoom; None for empty zooms and zooms outside the pyramid"""
        if not self.has_zoom(zoom):
            return None
        return self._entries[zoom]
    
    def highest_populated_zoom(self) -> Optional[int]:
        for zoom in range(self.max_zoom, self.min_zoom - 1, -1):
            if self._entries[zoom] is not None:
                return zoom
        return None
    
    def to_dict(self) -> Dict[int, Optional[List[int]]]:
        return {zoom: (bounds.to_list() if bounds else None) for zoom, bounds in self}
