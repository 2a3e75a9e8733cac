import asyncio

from kvstore_lib.storage.base import BulkOperation
from kvstore_lib.storage.memory_backend import MemoryDatabase


def test_memory_basic_operations():
    async def run():
        m = MemoryDatabase()
        await m.init()

        # set/get
        await m.set('k', {'v': 1})
        assert await m.get('k') == {'v': 1}

        # remove, including a missing key
        await m.remove('k')
        await m.remove('never-there')
        assert await m.get('k') is None

        # find_keys with exclusion
        for key in ('ns:a', 'ns:b', 'ns:b:old', 'other'):
            await m.set(key, 1)
        assert sorted(await m.find_keys('ns:*')) == ['ns:a', 'ns:b', 'ns:b:old']
        assert sorted(await m.find_keys('ns:*', '*:old')) == ['ns:a', 'ns:b']

        # bulk
        await m.do_bulk([BulkOperation('set', 'x', 1), BulkOperation('remove', 'ns:a')])
        assert await m.get('x') == 1
        assert await m.get('ns:a') is None

    asyncio.run(run())


def test_memory_uses_caller_supplied_dict():
    data = {'pre': 'existing'}
    m = MemoryDatabase({'data': data})

    async def run():
        assert await m.get('pre') == 'existing'
        await m.set('k', 'v')
        await m.close()

    asyncio.run(run())
    assert data == {'pre': 'existing', 'k': 'v'}
    # the caller's dict survives close, the driver's view does not
    assert dict(m.data) == {}


def test_memory_opts_out_of_wrapper_features():
    assert MemoryDatabase.wrapper_defaults == {'serialize': False, 'cache': 0, 'write_interval': 0}
