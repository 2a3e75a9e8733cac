import asyncio
import json

from kvstore_lib import Database
from kvstore_lib.storage.dirty_backend import DirtyDatabase


def _lines(path):
    return [json.loads(line) for line in path.read_text(encoding='utf-8').splitlines()]


def test_dirty_appends_one_line_per_write(tmp_path):
    path = tmp_path / 'kv.db'

    async def run():
        async with Database('dirty', {'filename': str(path)}) as db:
            await db.set('a', {'n': 1})
            await db.set('a', {'n': 2})
            await db.remove('a')
            await db.set('b', [1, 2])

    asyncio.run(run())
    assert _lines(path) == [
        {'key': 'a', 'val': {'n': 1}},
        {'key': 'a', 'val': {'n': 2}},
        {'key': 'a'},
        {'key': 'b', 'val': [1, 2]},
    ]


def test_dirty_replays_file_on_init(tmp_path):
    path = tmp_path / 'kv.db'
    path.write_text(
        '{"key": "a", "val": 1}\n'
        '{"key": "b", "val": 2}\n'
        '{"key": "a"}\n'
        '{"key": "c", "va',
        encoding='utf-8',
    )

    async def run():
        d = DirtyDatabase(str(path))
        await d.init()
        return await d.get('a'), await d.get('b'), sorted(await d.find_keys('*'))

    assert asyncio.run(run()) == (None, 2, ['b'])


def test_dirty_without_filename_is_memory_only():
    async def run():
        async with Database('dirty') as db:
            await db.set('k', 1)
            return await db.get('k')

    assert asyncio.run(run()) == 1
