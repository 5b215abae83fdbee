import asyncio
import copy
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from exceptions.tile_source_exceptions import (
    ArchiveError, ConfigurationError, SourceNotFoundError, SourceNotReadyError
)
from interfaces.tile_archive import ITileArchive
from models.source import (
    ConcreteSource, MergedMember, VirtualSource,
    MEMBER_DEFAULT_MIN_ZOOM, MEMBER_DEFAULT_MAX_ZOOM
)
from models.source_config import ConcreteSourceConfig, RegistryConfig, RegistryOptions, VirtualSourceConfig
from services.bounds_pyramid_builder import BoundsPyramidBuilder
from services.source_factory import SourceFactory
from services.virtual_source_resolver import VirtualSourceResolver, DEFAULT_MIN_ZOOM, DEFAULT_MAX_ZOOM
from utils.tile_calculator import TileCalculator


logger = logging.getLogger(__name__)


Source = Union[ConcreteSource, VirtualSource]
ArchiveFactory = Callable[[RegistryOptions, ConcreteSourceConfig], Awaitable[ITileArchive]]

_DROPPED_METADATA_FIELDS = ('filesize', 'mtime', 'scheme')


class SourceRegistry:
    """Registry of concrete and virtual tile sources.

    Populated once by initialize(); read-only afterwards. Concrete sources
    initialize concurrently, virtual sources are resolved only after every
    concrete source finished (successfully or not).
    """

    def __init__(self, options: Optional[RegistryOptions] = None,
                 archive_factory: Optional[ArchiveFactory] = None,
                 pyramid_builder: Optional[BoundsPyramidBuilder] = None):
        self.options = options or RegistryOptions()
        self._archive_factory = archive_factory or SourceFactory.create_from_config
        self._pyramid_builder = pyramid_builder
        self._sources: Dict[str, Source] = {}
        self._order: List[str] = []
        self._failed: Dict[str, Exception] = {}
        self._ready = False
        self._initializing = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def failed_sources(self) -> Dict[str, str]:
        """Concrete sources that could not be initialized, with the reason"""
        return {source_id: str(error) for source_id, error in self._failed.items()}

    async def initialize(self, config: RegistryConfig) -> None:
        """Initialize every configured source"""
        if self._ready or self._initializing:
            raise ConfigurationError("Source registry is already initialized")
        self._initializing = True

        self.options = config.options
        self._check_identifiers(config)
        if self._pyramid_builder is None:
            self._pyramid_builder = BoundsPyramidBuilder(self.options.query_timeout)

        tasks = [self._init_concrete(source_config) for source_config in config.data.values()]

        # stubs are registered before the concrete sources complete
        for vsource_config in config.virtual.values():
            self._create_virtual_stub(vsource_config, config)

        results = await asyncio.gather(*tasks, return_exceptions=True)

        for source_config, result in zip(config.data.values(), results):
            if isinstance(result, ConcreteSource):
                self._sources[source_config.id] = result
                continue
            if not isinstance(result, Exception):
                raise result
            self._failed[source_config.id] = result
            logger.error("Failed to initialize source '%s': %s", source_config.id, result)

        if self._failed and self.options.fail_fast:
            self.close()
            raise next(iter(self._failed.values()))

        for vsource_config in config.virtual.values():
            self._resolve_virtual(vsource_config)

        self._order = [source_id for source_id in list(config.data) + list(config.virtual)
                       if source_id in self._sources]
        self._ready = True
        self._initializing = False

        logger.info("Source registry ready: %d concrete, %d virtual, %d failed",
                    len(config.data) - len(self._failed), len(config.virtual), len(self._failed))

    def _check_identifiers(self, config: RegistryConfig) -> None:
        duplicates = set(config.data) & set(config.virtual)
        if duplicates:
            raise ConfigurationError(f"Source identifiers declared as both data and virtual: {sorted(duplicates)}")

    async def _bounded(self, awaitable: Awaitable, what: str, source_id: str):
        if self.options.query_timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, self.options.query_timeout)
        except asyncio.TimeoutError as e:
            raise ArchiveError(f"{what} of '{source_id}' timed out after {self.options.query_timeout}s",
                               source_id) from e

    async def _init_concrete(self, source_config: ConcreteSourceConfig) -> ConcreteSource:
        archive = await self._bounded(self._archive_factory(self.options, source_config),
                                      "Archive open", source_config.id)
        try:
            info = await self._bounded(archive.get_info(), "Metadata read", source_config.id)
            tile_metadata = self._build_tile_metadata(source_config, info)

            min_zoom = tile_metadata.setdefault('minzoom', DEFAULT_MIN_ZOOM)
            max_zoom = tile_metadata.setdefault('maxzoom', DEFAULT_MAX_ZOOM)
            pyramid = await self._pyramid_builder.build(archive, min_zoom, max_zoom)

            if not tile_metadata.get('bounds'):
                top_zoom = pyramid.highest_populated_zoom()
                if top_zoom is not None:
                    tile_metadata['bounds'] = TileCalculator.index_bounds_to_lnglat(pyramid.get(top_zoom), top_zoom)

            TileCalculator.fix_center(tile_metadata)

            if self.options.data_decorator:
                tile_metadata = self.options.data_decorator(source_config.id, 'tilejson', tile_metadata)
        except BaseException:
            archive.close()
            raise

        logger.info("Initialized source '%s' (zoom %s-%s)", source_config.id, min_zoom, max_zoom)

        return ConcreteSource(
            id=source_config.id,
            tile_metadata=tile_metadata,
            archive=archive,
            bounds_pyramid=pyramid,
            public_url=self.options.public_url
        )

    def _build_tile_metadata(self, source_config: ConcreteSourceConfig, info: Dict[str, Any]) -> Dict[str, Any]:
        tile_metadata: Dict[str, Any] = {}

        domains = source_config.domains or self.options.domains
        if domains:
            tile_metadata['tiles'] = list(domains)

        tile_metadata['name'] = source_config.id
        tile_metadata['format'] = 'pbf'
        tile_metadata.update(copy.deepcopy(info))
        tile_metadata['tilejson'] = '2.0.0'

        for key in _DROPPED_METADATA_FIELDS:
            tile_metadata.pop(key, None)

        tile_metadata.update(copy.deepcopy(source_config.tilejson))
        return tile_metadata

    def _create_virtual_stub(self, vsource_config: VirtualSourceConfig, config: RegistryConfig) -> None:
        members: List[MergedMember] = []

        for member_config in vsource_config.members:
            if member_config.id in config.virtual:
                logger.warning("Source '%s' in virtual source '%s' is not a concrete source. Skipping it.",
                               member_config.id, vsource_config.id)
                continue

            if member_config.id not in config.data:
                logger.warning("Source '%s' in virtual source '%s' was not found. Skipping it.",
                               member_config.id, vsource_config.id)
                continue

            members.append(MergedMember(
                ref_id=member_config.id,
                minzoom=member_config.minzoom if member_config.minzoom is not None else MEMBER_DEFAULT_MIN_ZOOM,
                maxzoom=member_config.maxzoom if member_config.maxzoom is not None else MEMBER_DEFAULT_MAX_ZOOM
            ))

        self._sources[vsource_config.id] = VirtualSource(
            id=vsource_config.id,
            members=members,
            public_url=self.options.public_url,
            center=vsource_config.center
        )

    def _resolve_virtual(self, vsource_config: VirtualSourceConfig) -> None:
        vsource = self._sources[vsource_config.id]
        members: List[MergedMember] = []

        for member in vsource.members:
            source = self._sources.get(member.ref_id)
            if not isinstance(source, ConcreteSource):
                logger.warning("Source '%s' in virtual source '%s' failed to initialize. Skipping it.",
                               member.ref_id, vsource.id)
                continue
            members.append(member.bind(source))

        tile_metadata = VirtualSourceResolver.aggregate(vsource.id, members, vsource.center)
        vsource.resolve(members, tile_metadata)

        logger.info("Resolved virtual source '%s' with %d member(s)", vsource.id, len(members))

    def _ensure_ready(self) -> None:
        if not self._ready:
            raise SourceNotReadyError("Source registry is not initialized")

    def get_source(self, source_id: str) -> Source:
        """Get a registered source"""
        self._ensure_ready()
        source = self._sources.get(source_id)
        if source is None:
            raise SourceNotFoundError(f"Source '{source_id}' does not exist")
        return source

    def has_source(self, source_id: str) -> bool:
        self._ensure_ready()
        return source_id in self._sources

    def list_sources(self) -> List[str]:
        """List all registered sources, concrete first, in configuration order"""
        self._ensure_ready()
        return list(self._order)

    def get_source_info(self, source_id: str) -> Dict[str, Any]:
        """Get source information for listings"""
        source = self.get_source(source_id)

        info: Dict[str, Any] = {
            'id': source.id,
            'virtual': source.is_virtual,
            'public_url': source.public_url,
            'tilejson': copy.deepcopy(source.tile_metadata)
        }

        if source.is_virtual:
            info['members'] = [
                {'id': member.ref_id, 'minzoom': member.minzoom, 'maxzoom': member.maxzoom}
                for member in source.members
            ]
        else:
            info['archive'] = source.archive.get_name()
            info['bounds_pyramid'] = source.bounds_pyramid.to_dict()

        return info

    def get_all_source_info(self) -> Dict[str, Dict[str, Any]]:
        return {source_id: self.get_source_info(source_id) for source_id in self.list_sources()}

    def close(self) -> None:
        """Release every archive"""
        for source in self._sources.values():
            if isinstance(source, ConcreteSource):
                source.archive.close()
