import logging
from typing import Dict, Any

from adapters.mbtiles_adapter import MBTilesAdapter
from exceptions.tile_source_exceptions import ConfigurationError
from interfaces.tile_archive import ITileArchive
from models.source_config import ConcreteSourceConfig, RegistryOptions
from utils.file_utils import FileUtils


logger = logging.getLogger(__name__)


class SourceFactory:
    """Factory for creating tile archive adapters"""
    
    @staticmethod
    async def create_archive(source_config: Dict[str, Any]) -> ITileArchive:
        """Create and initialize an archive adapter from configuration"""
        source_type = source_config.get('source_type', 'mbtiles')
        
        if source_type == 'mbtiles':
            adapter = MBTilesAdapter(source_config)
            await adapter.initialize()
            return adapter
        
        raise ConfigurationError(f"Unsupported source type: {source_type}")
    
    @staticmethod
    def archive_config(options: RegistryOptions, source: ConcreteSourceConfig) -> Dict[str, Any]:
        """Build adapter configuration for a concrete source"""
        if not source.mbtiles:
            raise ConfigurationError(f"Source '{source.id}' has no mbtiles file")
        
        return {
            'name': source.id,
            'source_type': 'mbtiles',
            'path': FileUtils.resolve_path(options.mbtiles_root, source.mbtiles)
        }
    
    @staticmethod
    async def create_from_config(options: RegistryOptions, source: ConcreteSourceConfig) -> ITileArchive:
        config = SourceFactory.archive_config(options, source)
        logger.debug("Opening archive %s for source '%s'", config['path'], source.id)
        return await SourceFactory.create_archive(config)
