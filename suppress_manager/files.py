# suppress_manager/files.py

from __future__ import annotations

from pathlib import Path
import shutil
from typing import Protocol

from .errors import CommandError
from .executor import CommandExecutor


class FileProvider(Protocol):
    """
    Minimal file access used by ConfigStore.
    Failures surface as OSError or CommandError.
    """

    async def read_text(self, path: str) -> str:
        ...

    async def write_text(self, path: str, content: str) -> None:
        ...

    async def copy(self, src: str, dst: str) -> None:
        ...

    async def exists(self, path: str) -> bool:
        ...


class LocalFileProvider:
    """
    Files on this machine. Relative paths are resolved against `root`.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, path: str) -> Path:
        return self.root / path

    async def read_text(self, path: str) -> str:
        return self._path(path).read_text(encoding="utf-8")

    async def write_text(self, path: str, content: str) -> None:
        target = self._path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    async def copy(self, src: str, dst: str) -> None:
        shutil.copyfile(self._path(src), self._path(dst))

    async def exists(self, path: str) -> bool:
        return self._path(path).exists()


class DeviceFileProvider:
    """
    Files on the device, reached through a CommandExecutor.

    Content is written through stdin of `cat`, never through the command
    line, so quotes in process names cannot break out of the command.
    """

    def __init__(self, executor: CommandExecutor, root: str):
        self.executor = executor
        self.root = root.rstrip("/")

    def _path(self, path: str) -> str:
        if path.startswith("/"):
            return path
        return f"{self.root}/{path}"

    async def read_text(self, path: str) -> str:
        return await self.executor.run(["cat", self._path(path)])

    async def write_text(self, path: str, content: str) -> None:
        await self.executor.run(
            ["sh", "-c", 'cat > "$1"', "sh", self._path(path)],
            input_text=content,
        )

    async def copy(self, src: str, dst: str) -> None:
        await self.executor.run(["cp", self._path(src), self._path(dst)])

    async def exists(self, path: str) -> bool:
        try:
            await self.executor.run(["test", "-e", self._path(path)])
        except CommandError:
            return False
        return True
