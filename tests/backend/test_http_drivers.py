"""HTTP based drivers exercised against respx-mocked engines."""
import asyncio
import json

import httpx
import pytest
import respx

from kvstore_lib.errors import DriverError
from kvstore_lib.storage.base import BulkOperation
from kvstore_lib.storage.couch_backend import CouchDatabase
from kvstore_lib.storage.elasticsearch_backend import ElasticsearchDatabase
from kvstore_lib.storage.surrealdb_backend import SurrealDatabase


def _body(route):
    return json.loads(route.calls.last.request.content)


def test_elasticsearch_creates_index_and_reads_documents():
    async def run():
        with respx.mock(assert_all_called=False) as router:
            router.route(method='HEAD', path='/kvstore').respond(404)
            create = router.route(method='PUT', path='/kvstore').respond(200, json={'acknowledged': True})
            router.route(method='GET', path='/kvstore/_doc/a').respond(
                200, json={'_source': {'key': 'a', 'value': '"x"'}},
            )
            router.route(method='GET', path='/kvstore/_doc/b').respond(404, json={'found': False})
            search = router.route(method='POST', path='/kvstore/_search').respond(200, json={
                'hits': {'hits': [{'_source': {'key': k}} for k in ('u1', 'u2', 'u1old')]},
            })
            d = ElasticsearchDatabase('http://es:9200')
            await d.init()
            got = await d.get('a'), await d.get('b')
            keys = await d.find_keys('u*', '*old')
            await d.close()
            return create, search, got, keys

    create, search, got, keys = asyncio.run(run())
    assert _body(create)['mappings']['properties']['key'] == {'type': 'keyword'}
    assert _body(search)['query'] == {'wildcard': {'key': {'value': 'u*'}}}
    assert got == ('"x"', None)
    assert keys == ['u1', 'u2']


def test_elasticsearch_bulk_reports_item_failures():
    async def run():
        with respx.mock(assert_all_called=False) as router:
            router.route(method='HEAD', path='/kvstore').respond(200)
            bulk = router.route(method='POST', path='/_bulk').respond(200, json={
                'errors': True,
                'items': [
                    {'index': {'status': 201}},
                    {'delete': {'status': 404}},
                    {'index': {'status': 400, 'error': 'mapper_parsing_exception'}},
                ],
            })
            d = ElasticsearchDatabase()
            await d.init()
            with pytest.raises(DriverError):
                await d.do_bulk([
                    BulkOperation('set', 'a', '1'),
                    BulkOperation('remove', 'b'),
                    BulkOperation('set', 'c', '3'),
                ])
            await d.close()
            return bulk.calls.last.request.content.decode('utf-8')

    lines = [json.loads(line) for line in asyncio.run(run()).splitlines()]
    assert lines[0] == {'index': {'_index': 'kvstore', '_id': 'a'}}
    assert lines[1] == {'key': 'a', 'value': '1'}
    assert lines[2] == {'delete': {'_index': 'kvstore', '_id': 'b'}}
    assert len(lines) == 5


def test_http_error_status_raises_driver_error():
    async def run():
        with respx.mock(assert_all_called=False) as router:
            router.route(method='HEAD', path='/kvstore').respond(200)
            router.route(method='GET', path='/kvstore/_doc/a').respond(500, text='boom')
            d = ElasticsearchDatabase()
            await d.init()
            try:
                with pytest.raises(DriverError):
                    await d.get('a')
            finally:
                await d.close()

    asyncio.run(run())


def test_couch_updates_with_current_revision():
    async def run():
        with respx.mock(assert_all_called=False) as router:
            router.route(method='PUT', path='/kvstore').respond(412, json={'error': 'file_exists'})
            router.route(method='GET', path='/kvstore/a').respond(
                200, json={'_id': 'a', '_rev': '1-abc', 'value': '"old"'},
            )
            router.route(method='GET', path='/kvstore/b').respond(404, json={'error': 'not_found'})
            put_a = router.route(method='PUT', path='/kvstore/a').respond(201, json={'ok': True})
            put_b = router.route(method='PUT', path='/kvstore/b').respond(201, json={'ok': True})
            delete = router.route(method='DELETE').respond(200, json={'ok': True})
            d = CouchDatabase({'url': 'http://couch:5984', 'username': 'admin', 'password': 'pw'})
            await d.init()
            await d.set('a', '"new"')
            await d.set('b', '"first"')
            await d.remove('b')
            await d.remove('a')
            await d.close()
            return put_a, put_b, delete

    put_a, put_b, delete = asyncio.run(run())
    assert _body(put_a) == {'value': '"new"', '_rev': '1-abc'}
    assert _body(put_b) == {'value': '"first"'}
    assert put_a.calls.last.request.headers['authorization'].startswith('Basic ')
    # only the existing document is deleted, at its revision
    assert delete.call_count == 1
    assert delete.calls.last.request.url.params['rev'] == '1-abc'


def test_couch_bulk_uses_all_docs_revisions():
    async def run():
        with respx.mock(assert_all_called=False) as router:
            router.route(method='PUT', path='/kvstore').respond(201, json={'ok': True})
            router.route(method='POST', path='/kvstore/_all_docs').respond(200, json={'rows': [
                {'key': 'a', 'id': 'a', 'value': {'rev': '2-a'}},
                {'key': 'b', 'error': 'not_found'},
                {'key': 'c', 'id': 'c', 'value': {'rev': '3-c'}},
            ]})
            bulk = router.route(method='POST', path='/kvstore/_bulk_docs').respond(201, json=[])
            d = CouchDatabase()
            await d.init()
            await d.do_bulk([
                BulkOperation('set', 'a', '1'),
                BulkOperation('set', 'b', '2'),
                BulkOperation('remove', 'c'),
                BulkOperation('remove', 'missing'),
            ])
            await d.close()
            return bulk

    assert _body(asyncio.run(run())) == {'docs': [
        {'_id': 'a', '_rev': '2-a', 'value': '1'},
        {'_id': 'b', 'value': '2'},
        {'_id': 'c', '_rev': '3-c', '_deleted': True},
    ]}


def test_surrealdb_sends_namespaced_queries():
    async def run():
        with respx.mock(assert_all_called=False) as router:
            sql = router.route(method='POST', path='/sql')
            sql.side_effect = [
                httpx.Response(200, json=[{'status': 'OK', 'result': None}]),
                httpx.Response(200, json=[{'status': 'OK', 'result': [{'value': '"v"'}]}]),
                httpx.Response(200, json=[{'status': 'OK', 'result': [{'key': 'a'}, {'key': 'b'}]}]),
                httpx.Response(200, json=[{'status': 'ERR', 'result': 'parse error'}]),
            ]
            d = SurrealDatabase({'namespace': 'ns1', 'database': 'db1'})
            await d.init()
            value = await d.get('a')
            keys = await d.find_keys('a*')
            with pytest.raises(DriverError):
                await d.remove('a')
            await d.close()
            return sql, value, keys

    sql, value, keys = asyncio.run(run())
    assert value == '"v"'
    assert keys == ['a']
    first = sql.calls[0].request
    assert first.headers['surreal-ns'] == 'ns1'
    assert first.headers['surreal-db'] == 'db1'
    assert first.content.decode('utf-8') == 'DEFINE TABLE IF NOT EXISTS store SCHEMALESS'
    assert sql.calls[1].request.content.decode('utf-8') == 'SELECT value FROM type::thing("store", "a")'
