"""Logging configuration"""
import logging
import sys
from typing import Dict, Any


class LoggingManager:
    """Manages application logging configuration"""
    
    @staticmethod
    def setup_logging(config: Dict[str, Any]) -> None:
        """Setup logging based on configuration"""
        logging_config = config.get('logging', {})
        
        level = getattr(logging, str(logging_config.get('level', 'INFO')).upper(), logging.INFO)
        format_str = logging_config.get('format', 
                                       '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        
        logging.basicConfig(
            level=level,
            format=format_str,
            stream=sys.stdout
        )
        
        # Per-module overrides, e.g. {"services.bounds_pyramid_builder": "DEBUG"}
        for logger_name, logger_level in logging_config.get('loggers', {}).items():
            logging.getLogger(logger_name).setLevel(str(logger_level).upper())
        
        logging.getLogger('asyncio').setLevel(logging.WARNING)
