# suppress_manager/discovery.py

from __future__ import annotations

import asyncio
import logging
import re
from typing import Callable, Collection, FrozenSet, List, Optional, Tuple

from .activity_log import log_event
from .errors import CommandError, DiscoveryError
from .executor import CommandExecutor
from .models import DiscoveryBatchState, InstalledApp, PackageKind, UNKNOWN_VERSION

logger = logging.getLogger(__name__)

DISCOVERY_BATCH_SIZE = 10
PACKAGE_PREFIX = "package:"

_LIST_FLAGS = {"third-party": "-3", "system": "-s"}

_LABEL_RE = re.compile(r"labelRes=\d+ nonLocalizedLabel=([^ \n]+)")
_VERSION_RE = re.compile(r"versionName=([^ \n]+)")

BatchCallback = Callable[[List[InstalledApp]], None]


def parse_package_list(output: str) -> List[str]:
    """
    Parse `pm list packages` output ("package:com.foo" per line) into a
    sorted, de-duplicated list of package names.
    """
    names = set()
    for line in output.splitlines():
        s = line.strip()
        if not s.startswith(PACKAGE_PREFIX):
            continue
        name = s[len(PACKAGE_PREFIX):].strip()
        if name:
            names.add(name)
    return sorted(names)


def default_app_info(package_name: str, known_system: Collection[str] = ()) -> InstalledApp:
    """
    Placeholder metadata used when dumpsys gives us nothing useful.
    """
    return InstalledApp(
        package_name=package_name,
        app_name=package_name.rsplit(".", 1)[-1] or package_name,
        version_name=UNKNOWN_VERSION,
        is_system=package_name in known_system,
        icon_path=None,
    )


def parse_package_dump(package_name: str, dump: str, known_system: Collection[str] = ()) -> InstalledApp:
    """
    Pull label and version out of `dumpsys package` output.
    Raises DiscoveryError if neither field is present.
    """
    label_match = _LABEL_RE.search(dump)
    version_match = _VERSION_RE.search(dump)

    label = label_match.group(1) if label_match else None
    if label == "null":
        label = None
    version = version_match.group(1) if version_match else None

    if label is None and version is None:
        raise DiscoveryError(f"No label or version in dumpsys output for {package_name}")

    fallback = default_app_info(package_name, known_system)
    return InstalledApp(
        package_name=package_name,
        app_name=label or fallback.app_name,
        version_name=version or UNKNOWN_VERSION,
        is_system=fallback.is_system,
        icon_path=None,
    )


class AppDiscoveryService:
    """
    Enumerates installed packages and their metadata in fixed-size batches.

    Batches run one after another; fetches inside a batch run concurrently,
    so at most `batch_size` device commands are in flight at any time.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        batch_size: int = DISCOVERY_BATCH_SIZE,
        with_icons: bool = False,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.executor = executor
        self.batch_size = batch_size
        self.with_icons = with_icons
        self.state: Optional[DiscoveryBatchState] = None
        self._cancel_requested = False

    async def list_packages(self, kind: PackageKind) -> List[str]:
        if kind not in _LIST_FLAGS:
            raise ValueError(f"Unknown package kind: {kind!r}")
        output = await self.executor.run(["pm", "list", "packages", _LIST_FLAGS[kind]])
        return parse_package_list(output)

    async def fetch_metadata(self, package_name: str, known_system: Collection[str] = ()) -> InstalledApp:
        """
        Metadata for one package. Never raises: any failure yields
        default_app_info() for that package only.
        """
        try:
            dump = await self.executor.run(["dumpsys", "package", package_name])
            app = parse_package_dump(package_name, dump, known_system)
        except (CommandError, DiscoveryError) as exc:
            logger.debug("Metadata for %s unavailable: %s", package_name, exc)
            app = default_app_info(package_name, known_system)

        if self.with_icons:
            icon_path = await self.resolve_icon_path(package_name)
            if icon_path:
                app = InstalledApp(
                    package_name=app.package_name,
                    app_name=app.app_name,
                    version_name=app.version_name,
                    is_system=app.is_system,
                    icon_path=icon_path,
                )
        return app

    async def resolve_icon_path(self, package_name: str) -> Optional[str]:
        """
        Path of the installed APK (`pm path`), which front-ends use to
        extract the icon. None when it cannot be resolved.
        """
        try:
            output = await self.executor.run(["pm", "path", package_name])
        except CommandError as exc:
            logger.debug("pm path %s failed: %s", package_name, exc)
            return None
        for line in output.splitlines():
            s = line.strip()
            if s.startswith(PACKAGE_PREFIX):
                return s[len(PACKAGE_PREFIX):].strip() or None
        return None

    def cancel(self) -> None:
        """
        Ask the running discovery to stop. Takes effect at the next batch
        boundary; the batch in flight still completes.
        """
        self._cancel_requested = True
        if self.state is not None:
            self.state.cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancel_requested

    async def candidate_packages(self) -> Tuple[List[str], FrozenSet[str]]:
        """
        Return (all packages sorted, set of system packages).
        """
        third_party, system = await asyncio.gather(
            self.list_packages("third-party"),
            self.list_packages("system"),
        )
        return sorted(set(third_party) | set(system)), frozenset(system)

    async def discover(self, on_batch: Optional[BatchCallback] = None) -> List[InstalledApp]:
        """
        Scan every installed package.

        After each batch, `on_batch` receives the accumulated list so far.
        Returns the accumulated list (partial if cancelled). A failure to
        list packages logs and yields an empty result.
        """
        self._cancel_requested = False
        state = DiscoveryBatchState()
        self.state = state

        try:
            packages, system = await self.candidate_packages()
        except CommandError as exc:
            logger.error("Could not list installed packages: %s", exc)
            self.state = None
            return []

        try:
            for start in range(0, len(packages), self.batch_size):
                if self._cancel_requested:
                    break

                batch = packages[start:start + self.batch_size]
                results = await asyncio.gather(
                    *(self.fetch_metadata(name, system) for name in batch)
                )

                if self._cancel_requested:
                    break

                state.apps.extend(results)
                state.batches_done += 1
                log_event(
                    "DISCOVERY_BATCH",
                    f"Batch {state.batches_done}: {len(state.apps)}/{len(packages)} packages",
                    {"batch": state.batches_done, "done": len(state.apps), "total": len(packages)},
                )
                if on_batch is not None:
                    on_batch(list(state.apps))

            if self._cancel_requested:
                state.cancelled = True
                log_event(
                    "DISCOVERY_CANCELLED",
                    f"Discovery stopped after {state.batches_done} batch(es)",
                    {"done": len(state.apps), "total": len(packages)},
                )
            else:
                log_event(
                    "DISCOVERY_DONE",
                    f"Discovered {len(state.apps)} packages",
                    {"total": len(state.apps)},
                )
            return list(state.apps)
        finally:
            self.state = None
