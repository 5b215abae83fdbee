from abc import abstractmethod
from typing import Dict, Any

from interfaces.tile_archive import ITileArchive


class BaseAdapter(ITileArchive):
    """Base adapter class for all tile archives"""
    
    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.name = config.get('name', 'unknown')
        self.source_type = config.get('source_type', 'unknown')
    
    @abstractmethod
    def validate_config(self) -> None:
        """Validate adapter configuration, raising ConfigurationError"""
        pass
    
    def get_name(self) -> str:
        """Get adapter name"""
        return self.name
    
