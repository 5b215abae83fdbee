"""
Tests for TileFetchService dispatch over concrete and virtual sources
"""

import asyncio

import pytest

from conftest import FakeArchive, PNG_BYTES, xyz_range_as_tms
from exceptions.tile_source_exceptions import ArchiveError, SourceNotFoundError, SourceNotReadyError
from models.source import TileCoordinate
from models.source_config import (
    ConcreteSourceConfig, MemberConfig, RegistryConfig, RegistryOptions, VirtualSourceConfig
)
from services.source_registry import SourceRegistry
from services.tile_fetch_service import TileFetchService


@pytest.fixture
def archives():
    world_ranges = {z: (0, 0, (1 << z) - 1, (1 << z) - 1) for z in range(0, 7)}
    city_ranges = {z: None for z in range(7, 15)}
    city_ranges[10] = xyz_range_as_tms(10, 10, 5, 20, 15)
    return {
        'A': FakeArchive('A', ranges=world_ranges, info={'minzoom': 0, 'maxzoom': 6, 'bounds': [-180, -85, 180, 85]},
                         tiles={(3, 0, 0): b'world'}),
        'B': FakeArchive('B', ranges=city_ranges, info={'minzoom': 7, 'maxzoom': 14, 'bounds': [0, 0, 10, 10]},
                         tiles={(10, 15, 10): PNG_BYTES}),
    }


def make_service(archives):
    async def factory(options, source_config):
        return archives[source_config.id]
    
    config = RegistryConfig(
        options=RegistryOptions(),
        data={source_id: ConcreteSourceConfig(source_id, f"{source_id}.mbtiles") for source_id in archives},
        virtual={'merged': VirtualSourceConfig('merged', [MemberConfig('A', 0, 6), MemberConfig('B', 7, 14)])}
    )
    registry = SourceRegistry(config.options, archive_factory=factory)
    asyncio.run(registry.initialize(config))
    return TileFetchService(registry)


def fetch(service, source_id, z, x, y):
    return asyncio.run(service.fetch(source_id, z, x, y))


class TestConcreteFetch:
    
    def test_existing_tile(self, archives):
        service = make_service(archives)
        tile = fetch(service, 'A', 3, 0, 0)
        
        assert tile.data == b'world'
    
    def test_missing_tile_is_none(self, archives):
        service = make_service(archives)
        
        assert fetch(service, 'A', 3, 1, 1) is None
    
    def test_archive_error_propagates(self, archives):
        service = make_service(archives)
        archives['A'].tile_error = True
        
        with pytest.raises(ArchiveError):
            fetch(service, 'A', 3, 0, 0)


class TestVirtualFetch:
    
    def test_delegates_to_winning_member(self, archives):
        service = make_service(archives)
        tile = fetch(service, 'merged', 10, 15, 10)
        
        assert tile.data == PNG_BYTES
        assert archives['B'].tile_calls == [(10, 15, 10)]
        assert archives['A'].tile_calls == []
    
    def test_low_zoom_from_world(self, archives):
        service = make_service(archives)
        
        assert fetch(service, 'merged', 3, 0, 0).data == b'world'
        assert service.resolve_source_id('merged', 3, 0, 0) == 'A'
    
    def test_no_member_touches_no_archive(self, archives):
        service = make_service(archives)
        
        assert fetch(service, 'merged', 10, 100, 100) is None
        assert fetch(service, 'merged', 20, 0, 0) is None
        assert archives['A'].tile_calls == []
        assert archives['B'].tile_calls == []
    
    def test_winning_member_error_is_not_not_found(self, archives):
        service = make_service(archives)
        archives['B'].tile_error = True
        
        with pytest.raises(ArchiveError):
            fetch(service, 'merged', 10, 15, 10)
    
    def test_member_without_tile_returns_none(self, archives):
        service = make_service(archives)
        
        assert fetch(service, 'merged', 10, 16, 10) is None
        assert archives['B'].tile_calls == [(10, 16, 10)]
    
    def test_fetch_for_coordinate(self, archives):
        service = make_service(archives)
        tile = asyncio.run(service.fetch_for_coordinate('merged', TileCoordinate(z=10, x=15, y=10)))
        
        assert tile.data == PNG_BYTES


class TestFetchErrors:
    
    def test_unknown_source(self, archives):
        service = make_service(archives)
        
        with pytest.raises(SourceNotFoundError):
            fetch(service, 'nope', 0, 0, 0)
    
    def test_registry_not_ready(self):
        service = TileFetchService(SourceRegistry())
        
        with pytest.raises(SourceNotReadyError):
            fetch(service, 'A', 0, 0, 0)
