import math
from typing import Any, Dict, List

from models.bounds_pyramid import IndexBounds


class TileCalculator:
    """Utility class for tile coordinate calculations"""
    
    @staticmethod
    def flip_y(y: int, zoom: int) -> int:
        """Convert a row index between TMS (south-up) and XYZ (north-up)"""
        return (1 << zoom) - 1 - y
    
    @staticmethod
    def tile_bounds(zoom: int, x: int, y: int) -> List[float]:
        """Return geographic bounds [minLon, minLat, maxLon, maxLat] for XYZ tile."""
        n = 2 ** zoom
        lon_min = x / n * 360.0 - 180.0
        lon_max = (x + 1) / n * 360.0 - 180.0

        def y_to_lat(y_val: int) -> float:
            return math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * y_val / n))))

        lat_max = y_to_lat(y)
        lat_min = y_to_lat(y + 1)
        return [lon_min, lat_min, lon_max, lat_max]
    
    @staticmethod
    def index_bounds_to_lnglat(bounds: IndexBounds, zoom: int) -> List[float]:
        """Geographic extent of an XYZ index rectangle"""
        west, _, _, north = TileCalculator.tile_bounds(zoom, bounds.min_x, bounds.min_y)
        _, south, east, _ = TileCalculator.tile_bounds(zoom, bounds.max_x, bounds.max_y)
        return [west, south, east, north]
    
    @staticmethod
    def fix_center(tile_metadata: Dict[str, Any], fit_width: int = 1024) -> None:
        """Fill a missing center from bounds, zoomed so the bounds fit fit_width pixels"""
        bounds = tile_metadata.get('bounds')
        if not bounds or tile_metadata.get('center'):
            return
        
        tiles = fit_width / 256
        span = bounds[2] - bounds[0]
        zoom = math.floor(-math.log(span / 360 / tiles, 2) + 0.5) if span > 0 else 0
        tile_metadata['center'] = [
            (bounds[0] + bounds[2]) / 2,
            (bounds[1] + bounds[3]) / 2,
            zoom
        ]
