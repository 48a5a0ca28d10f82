"""Shared pytest fixtures for the test suite.

Fixture overview
----------------
files      : in-memory FileProvider holding the config document
executor   : scripted CommandExecutor recording every call
notifier   : Notifier that keeps (level, message) pairs
store      : ConfigStore wired to `files` and `executor`
"""

from __future__ import annotations

import asyncio
import json
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import pytest

from suppress_manager.config import CONFIG_RELATIVE_PATH, ConfigStore
from suppress_manager.errors import CommandError

MODULE_PATH = "/data/adb/modules/test"


class FakeExecutor:
    """
    Returns canned output keyed by the exact argument tuple. Unknown
    commands succeed with empty output; commands in `failures` raise.
    """

    def __init__(
        self,
        responses: Optional[Dict[Tuple[str, ...], str]] = None,
        failures: Iterable[Tuple[str, ...]] = (),
    ):
        self.responses = dict(responses or {})
        self.failures: Set[Tuple[str, ...]] = set(failures)
        self.calls: List[Tuple[Tuple[str, ...], Optional[str]]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def run(self, args: Sequence[str], input_text: Optional[str] = None) -> str:
        key = tuple(args)
        self.calls.append((key, input_text))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if key in self.failures:
                raise CommandError(list(args), "simulated failure", 1)
            return self.responses.get(key, "")
        finally:
            self.in_flight -= 1

    def commands(self, program: str) -> List[Tuple[str, ...]]:
        return [args for args, _ in self.calls if args and args[0] == program]


class MemoryFileProvider:
    """
    Dict-backed FileProvider. `fail` holds (operation, path) pairs that
    raise OSError, e.g. ("write", CONFIG_RELATIVE_PATH).
    """

    def __init__(self, files: Optional[Dict[str, str]] = None):
        self.files: Dict[str, str] = dict(files or {})
        self.fail: Set[Tuple[str, str]] = set()
        self.writes: List[Tuple[str, str]] = []
        self.copies: List[Tuple[str, str]] = []

    def _check(self, op: str, path: str) -> None:
        if (op, path) in self.fail:
            raise OSError(f"simulated {op} failure on {path}")

    async def read_text(self, path: str) -> str:
        self._check("read", path)
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    async def write_text(self, path: str, content: str) -> None:
        self._check("write", path)
        self.writes.append((path, content))
        self.files[path] = content

    async def copy(self, src: str, dst: str) -> None:
        self._check("copy", dst)
        if src not in self.files:
            raise FileNotFoundError(src)
        self.copies.append((src, dst))
        self.files[dst] = self.files[src]

    async def exists(self, path: str) -> bool:
        return path in self.files


class RecordingNotifier:
    def __init__(self):
        self.messages: List[Tuple[str, str]] = []

    def notify(self, message: str, level: str = "info") -> None:
        self.messages.append((level, message))

    def levels(self) -> List[str]:
        return [level for level, _ in self.messages]


def config_text(apps: dict) -> str:
    return json.dumps({"suppress_apps": apps}, indent=2)


def device_responses(
    third_party: Iterable[str] = (),
    system: Iterable[str] = (),
    dumps: Optional[Dict[str, str]] = None,
) -> Dict[Tuple[str, ...], str]:
    """Canned `pm list packages` / `dumpsys package` output."""
    responses = {
        ("pm", "list", "packages", "-3"): "".join(f"package:{p}\n" for p in third_party),
        ("pm", "list", "packages", "-s"): "".join(f"package:{p}\n" for p in system),
    }
    for package, dump in (dumps or {}).items():
        responses[("dumpsys", "package", package)] = dump
    return responses


@pytest.fixture
def files() -> MemoryFileProvider:
    return MemoryFileProvider()


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def store(files: MemoryFileProvider, executor: FakeExecutor) -> ConfigStore:
    return ConfigStore(files, executor, CONFIG_RELATIVE_PATH, MODULE_PATH)
