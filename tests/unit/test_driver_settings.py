import asyncio

import pytest

from kvstore_lib.storage.base import create_find_regex, filter_keys, like_pattern, parse_settings
from kvstore_lib.storage.cassandra_backend import CassandraDatabase
from kvstore_lib.storage.dirty_git_backend import DirtyGitDatabase
from kvstore_lib.storage.mongodb_backend import MongoDatabase
from kvstore_lib.storage.mysql_backend import MySQLDatabase
from kvstore_lib.storage.postgres_backend import PostgresDatabase, PostgresSettings
from kvstore_lib.storage.redis_backend import RedisDatabase, glob_pattern
from kvstore_lib.storage.sqlite_backend import SQLiteDatabase, SQLiteSettings
from kvstore_lib.storage.surrealdb_backend import SurrealDatabase


def test_parse_settings_accepts_none_string_and_mapping():
    assert parse_settings(SQLiteSettings, None).filename == ':memory:'
    assert parse_settings(SQLiteSettings, 'var/kv.db', 'filename').filename == 'var/kv.db'
    assert parse_settings(SQLiteSettings, {'filename': 'x.db'}).filename == 'x.db'
    with pytest.raises(TypeError):
        parse_settings(SQLiteSettings, 'x.db')


def test_driver_settings_keep_unknown_options():
    opts = parse_settings(PostgresSettings, {'host': 'db', 'sslmode': 'require'})
    assert opts.connect_kwargs() == {'host': 'db', 'sslmode': 'require'}


def test_postgres_connection_string_setting():
    driver = PostgresDatabase('postgresql://u@db/kv')
    assert driver.options.conninfo == 'postgresql://u@db/kv'
    assert driver.options.connect_kwargs() == {}


def test_network_drivers_construct_without_connecting():
    assert MySQLDatabase({'host': 'db', 'user': 'kv'}).options.port == 3306
    assert MongoDatabase('mongodb://db:27017').options.url == 'mongodb://db:27017'
    assert RedisDatabase({'port': 6380}).options.port == 6380
    assert CassandraDatabase(None).options.contact_points == ['127.0.0.1']
    assert SurrealDatabase({'namespace': 'ns'}).options.url == 'http://localhost:8000'


def test_dirty_git_requires_a_filename_only_at_init():
    driver = DirtyGitDatabase(None)
    with pytest.raises(ValueError):
        asyncio.run(driver.init())


def test_find_regex_is_anchored_and_literal():
    regex, not_regex = create_find_regex('a.b*', None)
    assert regex.match('a.b:1')
    assert not regex.match('axb:1')
    assert not regex.match('xa.b')
    assert not_regex is None


def test_filter_keys():
    keys = ['user:1', 'user:2', 'user:1:tmp', 'group:1']
    assert filter_keys(keys, 'user:*') == ['user:1', 'user:2', 'user:1:tmp']
    assert filter_keys(keys, 'user:*', '*:tmp') == ['user:1', 'user:2']
    assert filter_keys(keys, '*') == keys


def test_like_pattern_escapes_sql_wildcards():
    assert like_pattern('user:*') == 'user:%'
    assert like_pattern('50%_off*') == '50!%!_off%'
    assert like_pattern('a!b') == 'a!!b'


def test_sqlite_glob_pattern():
    assert SQLiteDatabase()._pattern('k[1]?*') == 'k[[]1][?]*'


def test_redis_glob_pattern():
    assert glob_pattern('user:*') == 'user:*'
    assert glob_pattern('a?[b]\\') == 'a\\?\\[b\\]\\\\'
