import json
import os
from typing import Dict, Any, List, Optional

from exceptions.tile_source_exceptions import ConfigurationError, ValidationError
from models.source_config import (
    ConcreteSourceConfig, DataDecorator, MemberConfig, RegistryConfig, RegistryOptions, VirtualSourceConfig
)


class ConfigService:
    """Service for loading and validating configuration"""

    def load_config(self, config_path: str, public_url: Optional[str] = None,
                    data_decorator: Optional[DataDecorator] = None) -> RegistryConfig:
        """Load configuration from JSON file"""
        raw = self.load_raw(config_path)
        base_dir = os.path.dirname(os.path.abspath(config_path))
        return self.parse_config(raw, base_dir, public_url, data_decorator)

    def load_raw(self, config_path: str) -> Dict[str, Any]:
        """Read the JSON configuration file as a dictionary"""
        if not os.path.exists(config_path):
            raise ConfigurationError(f"Config file {config_path} not found!")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {config_path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error loading config: {e}")

    def parse_config(self, raw: Dict[str, Any], base_dir: str = ".",
                     public_url: Optional[str] = None,
                     data_decorator: Optional[DataDecorator] = None) -> RegistryConfig:
        """Convert a raw configuration dictionary to a RegistryConfig"""
        self.validate_config(raw)

        options = self._parse_options(raw.get('options') or {}, base_dir)
        options.public_url = public_url
        options.data_decorator = data_decorator

        data = {
            source_id: self._parse_data_source(source_id, params)
            for source_id, params in (raw.get('data') or {}).items()
        }
        virtual = {
            source_id: self._parse_virtual_source(source_id, params)
            for source_id, params in (raw.get('virtual') or {}).items()
        }

        return RegistryConfig(options=options, data=data, virtual=virtual)

    def validate_config(self, config: Dict[str, Any]) -> bool:
        """Validate configuration structure"""
        if not isinstance(config, dict):
            raise ValidationError("Configuration must be a JSON object")

        for key in ('options', 'data', 'virtual'):
            if key in config and config[key] is not None and not isinstance(config[key], dict):
                raise ValidationError(f"{key} must be a dictionary")

        duplicates = set(config.get('data') or {}) & set(config.get('virtual') or {})
        if duplicates:
            raise ValidationError(f"Source identifiers used in both data and virtual: {sorted(duplicates)}")

        return True

    def _parse_options(self, raw: Dict[str, Any], base_dir: str) -> RegistryOptions:
        paths = raw.get('paths') or {}
        mbtiles_root = os.path.join(base_dir, paths.get('mbtiles', '.'))

        query_timeout = raw.get('query_timeout')
        if query_timeout is not None:
            if not isinstance(query_timeout, (int, float)) or query_timeout <= 0:
                raise ValidationError(f"query_timeout must be a positive number, got {query_timeout!r}")
            query_timeout = float(query_timeout)

        return RegistryOptions(
            mbtiles_root=mbtiles_root,
            domains=self._parse_domains(raw.get('domains'), 'options'),
            query_timeout=query_timeout,
            fail_fast=bool(raw.get('fail_fast', False))
        )

    def _parse_domains(self, domains: Any, owner: str) -> Optional[List[str]]:
        if domains is None:
            return None
        if isinstance(domains, str):
            return [domains]
        if not isinstance(domains, list) or not all(isinstance(d, str) for d in domains):
            raise ValidationError(f"domains of '{owner}' must be a list of URL templates")
        return list(domains)

    def _parse_data_source(self, source_id: str, params: Dict[str, Any]) -> ConcreteSourceConfig:
        if not isinstance(params, dict):
            raise ValidationError(f"Data source '{source_id}' must be a dictionary")

        mbtiles = params.get('mbtiles')
        if not mbtiles or not isinstance(mbtiles, str):
            raise ValidationError(f"Data source '{source_id}' is missing the mbtiles file")

        tilejson = params.get('tilejson') or {}
        if not isinstance(tilejson, dict):
            raise ValidationError(f"tilejson of '{source_id}' must be a dictionary")

        return ConcreteSourceConfig(
            id=source_id,
            mbtiles=mbtiles,
            domains=self._parse_domains(params.get('domains'), source_id),
            tilejson=dict(tilejson)
        )

    def _parse_virtual_source(self, source_id: str, params: Dict[str, Any]) -> VirtualSourceConfig:
        if not isinstance(params, dict):
            raise ValidationError(f"Virtual source '{source_id}' must be a dictionary")

        sources = params.get('sources')
        if not isinstance(sources, list):
            raise ValidationError(f"Virtual source '{source_id}' must list its sources")

        members = []
        for item in sources:
            if not isinstance(item, dict) or not item.get('id'):
                raise ValidationError(f"Invalid member {item!r} in virtual source '{source_id}'")
            members.append(MemberConfig(
                id=item['id'],
                minzoom=self._optional_zoom(item, 'minzoom', source_id),
                maxzoom=self._optional_zoom(item, 'maxzoom', source_id)
            ))

        center = params.get('center')
        if center is not None:
            if not isinstance(center, list) or len(center) not in (2, 3):
                raise ValidationError(f"center of '{source_id}' must be [lng, lat] or [lng, lat, zoom]")
            center = list(center)

        return VirtualSourceConfig(id=source_id, members=members, center=center)

    def _optional_zoom(self, item: Dict[str, Any], key: str, source_id: str) -> Optional[int]:
        value = item.get(key)
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(f"{key} of member '{item['id']}' in '{source_id}' must be a non-negative integer")
        return value
