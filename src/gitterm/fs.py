"""File-system capability used by the shell builtins.

The terminal never touches the host file system directly: builtins go
through a :class:`FileSystem`, which the embedding application supplies.
:class:`LocalFileSystem` is a pathlib implementation confined to a sandbox
directory, used by the command-line front end and the tests.

Virtual paths are always absolute (``/`` is the sandbox root).
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from enum import StrEnum
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from gitterm.errors import GittermError
from gitterm.paths import normalize_path

logger = logging.getLogger(__name__)


class FileSystemError(GittermError):
    """A file-system operation failed. The message is shown to the user."""


class EntryType(StrEnum):
    FILE = "file"
    DIR = "dir"


class FileStat(BaseModel):
    """Result of :meth:`FileSystem.stat`."""

    type: EntryType
    size: int = 0


@runtime_checkable
class FileSystem(Protocol):
    """Protocol for the sandboxed file system behind the shell builtins."""

    async def stat(self, path: str) -> FileStat | None:
        """Describe *path*, or return ``None`` if it does not exist."""
        ...

    async def read_file(self, path: str) -> str: ...

    async def write_file(self, path: str, data: str | bytes) -> None: ...

    async def readdir(self, path: str) -> list[str]: ...

    async def mkdir(self, path: str) -> None: ...

    async def rm(self, path: str, *, recursive: bool = False) -> None: ...

    async def mv(self, src: str, dst: str) -> None: ...

    async def cp(self, src: str, dst: str) -> None: ...

    async def touch(self, path: str) -> None: ...


class LocalFileSystem:
    """:class:`FileSystem` backed by a host directory.

    Virtual paths are normalized before being joined to *root*, and the
    joined host path is resolved, so neither ``..`` nor a symlink can leave
    the sandbox. Host calls run in a worker thread.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def _host(self, path: str, *, follow: bool = True) -> Path:
        """Map a virtual path to a host path inside the sandbox.

        With ``follow=False`` only the parent directory is resolved, so the
        result names a symlink itself rather than its target.

        Raises:
            FileSystemError: If the resolved path lies outside the sandbox.
        """
        relative = normalize_path(path).lstrip("/")
        if not relative:
            return self.root
        joined = self.root / relative
        host = joined.resolve() if follow else joined.parent.resolve() / joined.name
        if not host.is_relative_to(self.root):
            msg = f"permission denied: {path}"
            raise FileSystemError(msg)
        return host

    def _existing(self, path: str, *, follow: bool = True) -> Path:
        host = self._host(path, follow=follow)
        if not (host.exists() or host.is_symlink()):
            msg = f"no such file or directory: {path}"
            raise FileSystemError(msg)
        return host

    # -- Synchronous implementations (run via asyncio.to_thread) -------------

    def _stat(self, path: str) -> FileStat | None:
        try:
            host = self._host(path)
        except FileSystemError:
            return None
        if host.is_dir():
            return FileStat(type=EntryType.DIR)
        if host.is_file():
            return FileStat(type=EntryType.FILE, size=host.stat().st_size)
        return None

    def _read_file(self, path: str) -> str:
        host = self._existing(path)
        if host.is_dir():
            msg = f"is a directory: {path}"
            raise FileSystemError(msg)
        return host.read_text(errors="replace")

    def _write_file(self, path: str, data: str | bytes) -> None:
        host = self._host(path)
        if isinstance(data, bytes):
            host.write_bytes(data)
        else:
            host.write_text(data)

    def _readdir(self, path: str) -> list[str]:
        host = self._existing(path)
        if not host.is_dir():
            msg = f"not a directory: {path}"
            raise FileSystemError(msg)
        return sorted(entry.name for entry in host.iterdir())

    def _mkdir(self, path: str) -> None:
        host = self._host(path, follow=False)
        try:
            host.mkdir()
        except FileExistsError:
            msg = f"file exists: {path}"
            raise FileSystemError(msg) from None
        except FileNotFoundError:
            msg = f"no such file or directory: {path}"
            raise FileSystemError(msg) from None

    def _rm(self, path: str, recursive: bool) -> None:
        host = self._existing(path, follow=False)
        if host == self.root:
            msg = "refusing to remove the root directory"
            raise FileSystemError(msg)
        if host.is_dir() and not host.is_symlink():
            if not recursive:
                msg = f"is a directory: {path}"
                raise FileSystemError(msg)
            shutil.rmtree(host)
        else:
            host.unlink()
        logger.debug("Removed %s", host)

    def _mv(self, src: str, dst: str) -> None:
        source = self._existing(src, follow=False)
        target = self._host(dst)
        if target.is_dir():
            target = target / source.name
        source.rename(target)

    def _cp(self, src: str, dst: str) -> None:
        source = self._existing(src)
        target = self._host(dst)
        if source.is_dir():
            msg = f"is a directory: {src}"
            raise FileSystemError(msg)
        if target.is_dir():
            target = target / source.name
        shutil.copyfile(source, target)

    def _touch(self, path: str) -> None:
        try:
            self._host(path).touch()
        except FileNotFoundError:
            msg = f"no such file or directory: {path}"
            raise FileSystemError(msg) from None

    # -- FileSystem protocol ---------------------------------------------------

    async def stat(self, path: str) -> FileStat | None:
        return await asyncio.to_thread(self._stat, path)

    async def read_file(self, path: str) -> str:
        return await asyncio.to_thread(self._read_file, path)

    async def write_file(self, path: str, data: str | bytes) -> None:
        await asyncio.to_thread(self._write_file, path, data)

    async def readdir(self, path: str) -> list[str]:
        return await asyncio.to_thread(self._readdir, path)

    async def mkdir(self, path: str) -> None:
        await asyncio.to_thread(self._mkdir, path)

    async def rm(self, path: str, *, recursive: bool = False) -> None:
        await asyncio.to_thread(self._rm, path, recursive)

    async def mv(self, src: str, dst: str) -> None:
        await asyncio.to_thread(self._mv, src, dst)

    async def cp(self, src: str, dst: str) -> None:
        await asyncio.to_thread(self._cp, src, dst)

    async def touch(self, path: str) -> None:
        await asyncio.to_thread(self._touch, path)
