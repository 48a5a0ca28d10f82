"""
Unit tests for the file providers and the shell executor.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from conftest import FakeExecutor
from suppress_manager.errors import CommandError
from suppress_manager.executor import ShellExecutor
from suppress_manager.files import DeviceFileProvider, LocalFileProvider

ROOT = "/data/adb/modules/AMMF"


class TestLocalFileProvider:
    def test_write_read_copy(self, tmp_path: Path) -> None:
        files = LocalFileProvider(tmp_path)

        async def run() -> None:
            await files.write_text("module_settings/a.json", '{"x": 1}')
            assert await files.exists("module_settings/a.json")
            await files.copy("module_settings/a.json", "module_settings/a.json.bak")

        asyncio.run(run())
        assert (tmp_path / "module_settings" / "a.json.bak").read_text(encoding="utf-8") == '{"x": 1}'
        assert asyncio.run(files.read_text("module_settings/a.json")) == '{"x": 1}'

    def test_missing_file_raises_oserror(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            asyncio.run(LocalFileProvider(tmp_path).read_text("nope.json"))


class TestDeviceFileProvider:
    def test_write_sends_content_on_stdin(self) -> None:
        executor = FakeExecutor()
        files = DeviceFileProvider(executor, ROOT + "/")
        content = "{\"p\": \"it's'; rm -rf /\"}"

        asyncio.run(files.write_text("module_settings/suppress_config.json", content))

        args, stdin = executor.calls[0]
        assert stdin == content
        assert args == ("sh", "-c", 'cat > "$1"', "sh", f"{ROOT}/module_settings/suppress_config.json")
        assert all(content not in arg for arg in args)

    def test_read_and_copy_commands(self) -> None:
        executor = FakeExecutor({("cat", f"{ROOT}/cfg.json"): "{}"})
        files = DeviceFileProvider(executor, ROOT)

        assert asyncio.run(files.read_text("cfg.json")) == "{}"
        asyncio.run(files.copy("cfg.json", "/sdcard/cfg.json"))
        assert executor.calls[1][0] == ("cp", f"{ROOT}/cfg.json", "/sdcard/cfg.json")

    def test_exists_maps_failure_to_false(self) -> None:
        executor = FakeExecutor(failures=[("test", "-e", f"{ROOT}/missing")])
        files = DeviceFileProvider(executor, ROOT)
        assert asyncio.run(files.exists("missing")) is False
        assert asyncio.run(files.exists("present")) is True


class TestShellExecutor:
    def test_adb_prefix(self) -> None:
        assert ShellExecutor()._prefix() == []
        assert ShellExecutor(adb=True)._prefix() == ["adb", "shell"]
        assert ShellExecutor(adb=True, serial="emu-1")._prefix() == ["adb", "-s", "emu-1", "shell"]

    def test_runs_command_and_returns_stdout(self) -> None:
        out = asyncio.run(ShellExecutor().run(["sh", "-c", "cat; echo done"], input_text="hi\n"))
        assert out == "hi\ndone\n"

    def test_nonzero_exit_raises(self) -> None:
        with pytest.raises(CommandError) as excinfo:
            asyncio.run(ShellExecutor().run(["sh", "-c", "echo bad >&2; exit 3"]))
        assert excinfo.value.returncode == 3
        assert "bad" in str(excinfo.value)

    def test_missing_binary_raises(self) -> None:
        with pytest.raises(CommandError):
            asyncio.run(ShellExecutor().run(["definitely-not-a-real-binary-xyz"]))
