import os

from exceptions.tile_source_exceptions import ConfigurationError


class FileUtils:
    """Utility class for file operations"""
    
    @staticmethod
    def resolve_path(base_dir: str, file_name: str) -> str:
        """Resolve file_name against base_dir (absolute names are kept)"""
        return os.path.abspath(os.path.join(base_dir, file_name))
    
    @staticmethod
    def get_file_size(file_path: str) -> int:
        """Get file size in bytes"""
        return os.path.getsize(file_path) if os.path.exists(file_path) else 0
    
    @staticmethod
    def ensure_readable_file(file_path: str) -> None:
        """Raise ConfigurationError unless file_path is a non-empty regular file"""
        if not os.path.isfile(file_path):
            raise ConfigurationError(f"Not valid MBTiles file: {file_path} does not exist")
        if FileUtils.get_file_size(file_path) == 0:
            raise ConfigurationError(f"Not valid MBTiles file: {file_path} is empty")
        if not os.access(file_path, os.R_OK):
            raise ConfigurationError(f"Not valid MBTiles file: {file_path} is not readable")
