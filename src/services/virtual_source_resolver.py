import logging
from typing import Any, Dict, List, Optional

from exceptions.tile_source_exceptions import SourceNotReadyError, ValidationError
from models.source import MergedMember, VirtualSource


logger = logging.getLogger(__name__)


DEFAULT_MIN_ZOOM = 0
DEFAULT_MAX_ZOOM = 24

MERGED_METADATA_VERSION = "3.6.1"
TILEJSON_VERSION = "2.0.0"
MERGED_FORMAT = "pbf"


class VirtualSourceResolver:
    """Member selection and metadata aggregation for virtual sources"""

    @staticmethod
    def resolve_member(source: VirtualSource, x: int, y: int, z: int) -> Optional[str]:
        """Get the identifier of the member that serves tile z/x/y.

        Members are scanned in declaration order and the first one whose zoom
        window and index bounds cover the tile wins.
        """
        member = VirtualSourceResolver.find_member(source, x, y, z)
        return member.ref_id if member else None

    @staticmethod
    def find_member(source: VirtualSource, x: int, y: int, z: int) -> Optional[MergedMember]:
        if not source.is_virtual:
            raise ValidationError(f"Source '{source.id}' must be virtual")

        if not source.is_resolved:
            raise SourceNotReadyError(f"Virtual source '{source.id}' is not resolved yet")

        # zoom range of the whole virtual source
        if z < source.tile_metadata['minzoom'] or z > source.tile_metadata['maxzoom']:
            return None

        for member in source.members:
            if not member.covers_zoom(z):
                continue

            if member.source is None:
                continue

            # empty zoom or outside the archive pyramid
            bounds = member.source.bounds_pyramid.get(z)
            if bounds is None:
                continue

            if bounds.contains(x, y):
                return member

        return None

    @staticmethod
    def union_bounds(bounds_list: List[List[float]]) -> Optional[List[float]]:
        """Component-wise extent [west, south, east, north] of several bounds"""
        if not bounds_list:
            return None

        return [
            min(bounds[0] for bounds in bounds_list),
            min(bounds[1] for bounds in bounds_list),
            max(bounds[2] for bounds in bounds_list),
            max(bounds[3] for bounds in bounds_list)
        ]

    @staticmethod
    def aggregate(source_id: str, members: List[MergedMember],
                  center: Optional[List[float]] = None) -> Dict[str, Any]:
        """Build the metadata of a virtual source from its resolved members"""
        bounds_list: List[List[float]] = []
        min_zooms: List[int] = []
        max_zooms: List[int] = []
        layers: Dict[str, Dict[str, Any]] = {}

        for member in members:
            if member.source is None:
                logger.warning("Member '%s' of virtual source '%s' is unresolved, ignoring it",
                               member.ref_id, source_id)
                continue

            metadata = member.source.tile_metadata

            bounds = metadata.get('bounds')
            if bounds and len(bounds) == 4:
                bounds_list.append(list(bounds))

            minzoom = metadata.get('minzoom')
            maxzoom = metadata.get('maxzoom')
            min_zooms.append(minzoom if isinstance(minzoom, int) else DEFAULT_MIN_ZOOM)
            max_zooms.append(maxzoom if isinstance(maxzoom, int) else DEFAULT_MAX_ZOOM)

            # later members overwrite earlier layer definitions
            for layer in metadata.get('vector_layers') or []:
                if isinstance(layer, dict) and 'id' in layer:
                    layers[layer['id']] = layer

        minzoom = min(min_zooms) if min_zooms else DEFAULT_MIN_ZOOM
        maxzoom = max(max_zooms) if max_zooms else DEFAULT_MAX_ZOOM
        union = VirtualSourceResolver.union_bounds(bounds_list)

        if center:
            center = list(center)
        elif union:
            center = [(union[0] + union[2]) / 2, (union[1] + union[3]) / 2, maxzoom]
        else:
            center = [0, 0, 0]

        tile_metadata: Dict[str, Any] = {
            'version': MERGED_METADATA_VERSION,
            'tilejson': TILEJSON_VERSION,
            'center': center,
            'id': source_id,
            'name': source_id,
            'format': MERGED_FORMAT,
            'minzoom': minzoom,
            'maxzoom': maxzoom,
            'vector_layers': list(layers.values())
        }

        if union:
            tile_metadata['bounds'] = union

        return tile_metadata
