from typing import Optional


class TileSourceException(Exception):
    """Base exception for the tile source registry"""
    pass


class ConfigurationError(TileSourceException):
    """Configuration related errors"""
    pass


class ValidationError(TileSourceException):
    """Validation related errors"""
    pass


class ArchiveError(TileSourceException):
    """Tile archive I/O errors"""

    def __init__(self, message: str, source_name: Optional[str] = None):
        super().__init__(message)
        self.source_name = source_name


class SourceNotFoundError(TileSourceException):
    """Unknown source identifier"""
    pass


class SourceNotReadyError(TileSourceException):
    """Source or registry used before initialization completed"""
    pass
