import pytest

from kvstore_lib.errors import InvalidBackendType
from kvstore_lib.storage import registry
from kvstore_lib.storage.base import AbstractDatabase
from kvstore_lib.storage.cache_layer import CacheAndBufferLayer
from kvstore_lib.storage.interfaces import CacheLayerProtocol, DriverProtocol
from kvstore_lib.storage.registry import BackendType, DEFAULT_BACKEND, parse_backend_type, resolve, supported_backends
from kvstore_lib.storage.sqlite_backend import SQLiteDatabase


@pytest.mark.parametrize('type_id', supported_backends())
def test_resolve_returns_driver_for_every_supported_type(type_id):
    driver = resolve(type_id, None)
    assert isinstance(driver, AbstractDatabase)
    assert isinstance(driver, registry.DRIVERS[BackendType(type_id)])
    assert isinstance(driver, DriverProtocol)


def test_every_backend_type_has_a_driver():
    assert set(registry.DRIVERS) == set(BackendType)


def test_supported_backends_lists_the_required_variants():
    names = set(supported_backends())
    for required in ('memory', 'mock', 'dirty', 'dirtygit', 'sqlite', 'mysql', 'postgres',
                     'postgrespool', 'mongodb', 'redis', 'cassandra', 'elasticsearch',
                     'couch', 'rethink', 'surrealdb', 'mssql'):
        assert required in names


@pytest.mark.parametrize('bad', ['nosuchdb', 'SQLITE', '', None, 42])
def test_unknown_type_is_rejected_without_constructing_a_driver(bad, monkeypatch):
    constructed = []

    class Spy(AbstractDatabase):
        def __init__(self, settings=None):
            constructed.append(settings)
            super().__init__(settings)

        async def get(self, key): ...
        async def set(self, key, value): ...
        async def remove(self, key): ...
        async def find_keys(self, key, not_key=None): ...

    monkeypatch.setattr(registry, 'DRIVERS', {t: Spy for t in BackendType})
    with pytest.raises(InvalidBackendType) as exc:
        resolve(bad, {'a': 1})
    assert exc.value.type_id == bad
    assert constructed == []


def test_invalid_backend_type_is_a_value_error():
    with pytest.raises(ValueError):
        parse_backend_type('bogus')


def test_parse_accepts_enum_members_and_values():
    assert parse_backend_type(BackendType.REDIS) is BackendType.REDIS
    assert parse_backend_type('redis') is BackendType.REDIS


def test_settings_are_passed_through_unmodified():
    settings = {'data': {}}
    driver = resolve('memory', settings)
    assert driver.settings is settings


def test_default_backend_is_embedded_sqlite():
    assert DEFAULT_BACKEND is BackendType.SQLITE
    assert isinstance(resolve(DEFAULT_BACKEND, None), SQLiteDatabase)


def test_cache_layer_satisfies_facade_protocol():
    assert isinstance(CacheAndBufferLayer(resolve('memory')), CacheLayerProtocol)
