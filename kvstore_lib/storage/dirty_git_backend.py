"""Append-only file driver that commits the file to git after every write.

The file's directory is turned into a git repository on `init` when it is
not one already. With `push` enabled each commit is pushed to `remote`.
"""
from __future__ import annotations
import asyncio
from typing import Optional

from kvstore_lib.errors import DriverError

from .dirty_backend import DirtyDatabase, DirtySettings


class DirtyGitSettings(DirtySettings):
    push: bool = False
    remote: str = "origin"
    branch: Optional[str] = None
    author_name: str = "kvstore"
    author_email: str = "kvstore@localhost"


class DirtyGitDatabase(DirtyDatabase):
    settings_model = DirtyGitSettings

    async def _git(self, *args: str) -> str:
        assert self.path is not None
        opts = self.options
        proc = await asyncio.create_subprocess_exec(
            "git",
            "-c", f"user.name={opts.author_name}",
            "-c", f"user.email={opts.author_email}",
            *args,
            cwd=str(self.path.parent),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        out, err = await proc.communicate()
        if proc.returncode != 0:
            raise DriverError(f"git {args[0]} failed: {err.decode('utf-8', 'replace').strip()}")
        return out.decode("utf-8", "replace")

    async def init(self) -> None:
        if self.path is None:
            raise ValueError("dirtygit requires a filename")
        await super().init()
        try:
            await self._git("rev-parse", "--is-inside-work-tree")
        except DriverError:
            self.logger.info("Initializing git repository in %s", self.path.parent)
            await self._git("init")

    async def _after_write(self) -> None:
        await self._git("add", self.path.name)
        await self._git("commit", "-m", "Automated commit from kvstore", "--", self.path.name)
        if self.options.push:
            args = ["push", self.options.remote]
            if self.options.branch:
                args.append(self.options.branch)
            await self._git(*args)
