import logging
from typing import Optional

from models.source import ConcreteSource, TileCoordinate, TileData
from services.source_registry import SourceRegistry
from services.virtual_source_resolver import VirtualSourceResolver


logger = logging.getLogger(__name__)


class TileFetchService:
    """Uniform tile access over concrete and virtual sources.

    fetch() returns TileData, or None when the tile does not exist. Archive
    failures raise ArchiveError unchanged.
    """
    
    def __init__(self, registry: SourceRegistry):
        self.registry = registry
    
    async def fetch(self, source_id: str, z: int, x: int, y: int) -> Optional[TileData]:
        """Fetch tile z/x/y from a source"""
        source = self.registry.get_source(source_id)
        
        if isinstance(source, ConcreteSource):
            return await source.archive.get_tile(z, x, y)
        
        member = VirtualSourceResolver.find_member(source, x, y, z)
        if member is None:
            logger.debug("No member of '%s' covers tile %d/%d/%d", source_id, z, x, y)
            return None
        
        return await member.source.archive.get_tile(z, x, y)
    
    async def fetch_for_coordinate(self, source_id: str, coordinate: TileCoordinate) -> Optional[TileData]:
        return await self.fetch(source_id, coordinate.z, coordinate.x, coordinate.y)
    
    def resolve_source_id(self, source_id: str, z: int, x: int, y: int) -> Optional[str]:
        """Identifier of the concrete source that would serve the tile"""
        source = self.registry.get_source(source_id)
        if isinstance(source, ConcreteSource):
            return source.id
        return VirtualSourceResolver.resolve_member(source, x, y, z)
