"""Backend registry: maps a backend type identifier to its driver class.

The set of backends is closed; anything outside `BackendType` is rejected
with `InvalidBackendType` before any driver is constructed. Resolving a
driver performs no I/O: drivers connect in their `init()`.
"""
from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Type, Union

from kvstore_lib.errors import InvalidBackendType

from .base import AbstractDatabase
from .cassandra_backend import CassandraDatabase
from .couch_backend import CouchDatabase
from .dirty_backend import DirtyDatabase
from .dirty_git_backend import DirtyGitDatabase
from .elasticsearch_backend import ElasticsearchDatabase
from .memory_backend import MemoryDatabase
from .mock_backend import MockDatabase
from .mongodb_backend import MongoDatabase
from .mssql_backend import MSSQLDatabase
from .mysql_backend import MySQLDatabase
from .postgres_backend import PostgresDatabase, PostgresPoolDatabase
from .redis_backend import RedisDatabase
from .rethink_backend import RethinkDatabase
from .sqlite_backend import SQLiteDatabase
from .surrealdb_backend import SurrealDatabase


class BackendType(str, Enum):
    MEMORY = "memory"
    MOCK = "mock"
    DIRTY = "dirty"
    DIRTYGIT = "dirtygit"
    SQLITE = "sqlite"
    MYSQL = "mysql"
    POSTGRES = "postgres"
    POSTGRESPOOL = "postgrespool"
    MSSQL = "mssql"
    MONGODB = "mongodb"
    REDIS = "redis"
    CASSANDRA = "cassandra"
    ELASTICSEARCH = "elasticsearch"
    COUCH = "couch"
    RETHINK = "rethink"
    SURREALDB = "surrealdb"


# Local embedded engine used when no type is configured.
DEFAULT_BACKEND = BackendType.SQLITE

DRIVERS: Dict[BackendType, Type[AbstractDatabase]] = {
    BackendType.MEMORY: MemoryDatabase,
    BackendType.MOCK: MockDatabase,
    BackendType.DIRTY: DirtyDatabase,
    BackendType.DIRTYGIT: DirtyGitDatabase,
    BackendType.SQLITE: SQLiteDatabase,
    BackendType.MYSQL: MySQLDatabase,
    BackendType.POSTGRES: PostgresDatabase,
    BackendType.POSTGRESPOOL: PostgresPoolDatabase,
    BackendType.MSSQL: MSSQLDatabase,
    BackendType.MONGODB: MongoDatabase,
    BackendType.REDIS: RedisDatabase,
    BackendType.CASSANDRA: CassandraDatabase,
    BackendType.ELASTICSEARCH: ElasticsearchDatabase,
    BackendType.COUCH: CouchDatabase,
    BackendType.RETHINK: RethinkDatabase,
    BackendType.SURREALDB: SurrealDatabase,
}


def parse_backend_type(type_id: Union[str, BackendType]) -> BackendType:
    """Return the `BackendType` for `type_id` or raise `InvalidBackendType`."""
    if isinstance(type_id, BackendType):
        return type_id
    if isinstance(type_id, str):
        try:
            return BackendType(type_id)
        except ValueError:
            pass
    raise InvalidBackendType(type_id)


def resolve(type_id: Union[str, BackendType], settings: Any = None) -> AbstractDatabase:
    """Instantiate the driver registered for `type_id` with `settings` as given."""
    backend = parse_backend_type(type_id)
    return DRIVERS[backend](settings)


def supported_backends() -> List[str]:
    return [b.value for b in BackendType]
