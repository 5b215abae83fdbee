"""
End to end: configuration file, MBTiles archives, registry and tile fetching
"""

import asyncio
import json

import pytest

from conftest import PNG_BYTES, vector_layers_json, write_mbtiles
from services.config_service import ConfigService
from services.source_registry import SourceRegistry
from services.tile_fetch_service import TileFetchService


WORLD_TILE = b"\x89PNG\r\n\x1a\n" + b"world"


@pytest.fixture
def config_path(tmp_path):
    data_dir = tmp_path / 'data'
    data_dir.mkdir()
    
    # world: zoom 0-2 everywhere, rows stored TMS
    world_tiles = {}
    for z in range(0, 3):
        for x in range(1 << z):
            for y in range(1 << z):
                world_tiles[(z, x, y)] = WORLD_TILE
    write_mbtiles(data_dir / 'world.mbtiles', {
        'name': 'World', 'format': 'pbf', 'minzoom': '0', 'maxzoom': '2',
        'bounds': '-180,-85,180,85', 'json': vector_layers_json('water', 'roads')
    }, world_tiles)
    
    # city: zoom 3 only, XYZ tile 3/4/2 (TMS row 5)
    write_mbtiles(data_dir / 'city.mbtiles', {
        'name': 'City', 'format': 'pbf', 'minzoom': '3', 'maxzoom': '3',
        'bounds': '0,45,45,66', 'json': vector_layers_json('roads', 'buildings')
    }, {(3, 4, 5): PNG_BYTES})
    
    (data_dir / 'empty.mbtiles').write_bytes(b'')
    
    config = {
        'options': {'paths': {'mbtiles': 'data'}, 'query_timeout': 10},
        'data': {
            'world': {'mbtiles': 'world.mbtiles'},
            'city': {'mbtiles': 'city.mbtiles'},
            'empty': {'mbtiles': 'empty.mbtiles'}
        },
        'virtual': {
            'merged': {'sources': [{'id': 'world', 'maxzoom': 2}, {'id': 'city'},
                                   {'id': 'empty'}, {'id': 'unknown'}]}
        }
    }
    path = tmp_path / 'config.json'
    path.write_text(json.dumps(config), encoding='utf-8')
    return str(path)


@pytest.fixture
def service(config_path):
    config = ConfigService().load_config(config_path)
    registry = SourceRegistry(config.options)
    asyncio.run(registry.initialize(config))
    yield TileFetchService(registry)
    registry.close()


def test_sources_listed(service):
    registry = service.registry
    
    assert registry.list_sources() == ['world', 'city', 'merged']
    assert 'empty' in registry.failed_sources


def test_city_pyramid_is_flipped(service):
    pyramid = service.registry.get_source('city').bounds_pyramid
    
    assert pyramid.get(3).to_list() == [4, 2, 4, 2]


def test_merged_metadata(service):
    metadata = service.registry.get_source('merged').tile_metadata
    
    assert metadata['bounds'] == [-180, -85, 180, 85]
    assert metadata['minzoom'] == 0
    assert metadata['maxzoom'] == 3
    assert [layer['id'] for layer in metadata['vector_layers']] == ['water', 'roads', 'buildings']


def test_merged_fetch(service):
    assert asyncio.run(service.fetch('merged', 1, 0, 0)).data == WORLD_TILE
    assert asyncio.run(service.fetch('merged', 3, 4, 2)).data == PNG_BYTES
    assert asyncio.run(service.fetch('merged', 3, 0, 0)) is None
    assert asyncio.run(service.fetch('merged', 4, 8, 4)) is None


def test_concrete_fetch(service):
    tile = asyncio.run(service.fetch('city', 3, 4, 2))
    
    assert tile.data == PNG_BYTES
    assert tile.headers['Content-Type'] == 'image/png'
