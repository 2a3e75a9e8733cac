import asyncio
import shutil
import subprocess

import pytest

from kvstore_lib import Database

pytestmark = pytest.mark.skipif(shutil.which('git') is None, reason='git is not installed')


def test_dirtygit_commits_every_write(tmp_path):
    path = tmp_path / 'repo' / 'kv.db'

    async def run():
        async with Database('dirtygit', {'filename': str(path)}) as db:
            await db.set('a', 1)
            await db.set('b', 2)
            await db.remove('a')

    asyncio.run(run())
    log = subprocess.run(
        ['git', 'log', '--format=%s'], cwd=path.parent, capture_output=True, text=True, check=True,
    ).stdout.splitlines()
    assert len(log) == 3
    assert set(log) == {'Automated commit from kvstore'}
    status = subprocess.run(
        ['git', 'status', '--porcelain'], cwd=path.parent, capture_output=True, text=True, check=True,
    ).stdout
    assert status == ''
