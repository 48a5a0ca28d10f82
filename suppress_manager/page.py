# suppress_manager/page.py
"""
The suppression manager page as one instantiable component.

A page owns its ConfigStore, AppDiscoveryService, EditWorkflow and
ChangeTracker for the lifetime of a session. Front-ends call the intent
methods below and draw whatever PageView `on_render` receives; the view is
a pure projection of policy, discovery results and workflow state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .config import CONFIG_RELATIVE_PATH, ConfigStore, DEFAULT_MODULE_PATH
from .discovery import AppDiscoveryService
from .errors import PersistenceError, ValidationError
from .executor import ShellExecutor
from .files import DeviceFileProvider
from .models import ConfiguredApp, DiscoveryFilters, InstalledApp, WorkflowState
from .notify import LogNotifier, Notifier
from .reconcile import available_view, configured_view
from .tracker import ChangeTracker, ConfirmFn, RefreshScheduler, SessionStore
from .workflow import EditWorkflow

logger = logging.getLogger(__name__)

REFRESH_PROMPT = "There are unsaved changes. Reload anyway?"
RESTORE_PROMPT = "Revert to the last saved configuration?"


@dataclass
class PageView:
    configured: List[ConfiguredApp] = field(default_factory=list)
    available: List[InstalledApp] = field(default_factory=list)
    workflow: WorkflowState = field(default_factory=WorkflowState)
    filters: DiscoveryFilters = field(default_factory=DiscoveryFilters)
    loading: bool = False
    discovering: bool = False
    dirty: bool = False


class SuppressManagerPage:
    def __init__(
        self,
        store: ConfigStore,
        discovery: AppDiscoveryService,
        session: Optional[SessionStore] = None,
        notifier: Optional[Notifier] = None,
        confirm: Optional[ConfirmFn] = None,
        on_render: Optional[Callable[[PageView], None]] = None,
    ):
        self.store = store
        self.discovery = discovery
        self.notifier = notifier or LogNotifier()
        self.confirm = confirm
        self.on_render = on_render

        self.workflow = EditWorkflow(store, self.notifier)
        self.tracker = ChangeTracker(store, session or SessionStore(), confirm=confirm)
        self.scheduler = RefreshScheduler(self._render)

        self.filters = DiscoveryFilters()
        self.installed_apps: List[InstalledApp] = []
        self.loading = False
        self.discovering = False
        self.visible = True
        self._scan: Optional[asyncio.Future] = None

        store.subscribe(self.request_refresh)

    @classmethod
    def for_device(
        cls,
        module_path: str = DEFAULT_MODULE_PATH,
        adb: bool = False,
        serial: Optional[str] = None,
        **kwargs,
    ) -> "SuppressManagerPage":
        """Wire a page against a real device (local shell or adb)."""
        executor = ShellExecutor(adb=adb, serial=serial)
        files = DeviceFileProvider(executor, module_path)
        store = ConfigStore(files, executor, CONFIG_RELATIVE_PATH, module_path)
        return cls(store, AppDiscoveryService(executor), **kwargs)

    # --- rendering ---

    def view(self) -> PageView:
        policy = self.store.policy
        return PageView(
            configured=configured_view(policy, self.installed_apps),
            available=available_view(self.installed_apps, policy, self.filters),
            workflow=WorkflowState(
                mode=self.workflow.mode,
                package_name=self.workflow.package_name,
                draft_processes=self.workflow.draft,
            ),
            filters=DiscoveryFilters(self.filters.query, self.filters.show_system_apps),
            loading=self.loading,
            discovering=self.discovering,
            dirty=self.tracker.has_unsaved_changes(),
        )

    def request_refresh(self) -> None:
        if self.visible:
            self.scheduler.request()

    def _render(self) -> None:
        if self.on_render is not None:
            self.on_render(self.view())

    def set_visible(self, visible: bool) -> None:
        self.visible = visible
        if visible:
            self.request_refresh()
        else:
            self.scheduler.cancel()

    # --- lifecycle ---

    async def activate(self) -> None:
        """
        Load config and discover apps concurrently. Any edit stashed by a
        previous deactivate() is restored as soon as the config is loaded,
        so the page is editable while the scan is still running.
        """
        self.loading = True
        self.request_refresh()
        try:
            await asyncio.gather(self._load_and_restore(), self._discover())
        finally:
            self.loading = False
        self.request_refresh()

    async def _load_and_restore(self) -> None:
        try:
            await self.store.load()
        finally:
            self.loading = False
        if self.tracker.on_activate():
            self.notifier.notify("Unsaved changes restored", "info")
        self.request_refresh()

    def deactivate(self) -> bool:
        """
        Leave the page. Returns False if the user chose to stay.
        """
        if not self.tracker.on_deactivate():
            return False
        self.workflow.cancel()
        self.filters.query = ""
        self.discovery.cancel()
        self.scheduler.cancel()
        return True

    async def _discover(self) -> None:
        # one scan at a time: stop the one in flight before starting over
        previous = self._scan
        if previous is not None and not previous.done():
            self.discovery.cancel()
            await previous
        self._scan = asyncio.ensure_future(self._scan_apps())
        await self._scan

    async def _scan_apps(self) -> None:
        self.discovering = True
        try:
            self.installed_apps = await self.discovery.discover(self._on_batch)
        finally:
            self.discovering = False

    def _on_batch(self, apps: List[InstalledApp]) -> None:
        self.installed_apps = apps
        self.request_refresh()

    # --- config actions ---

    async def save(self) -> bool:
        try:
            await self.store.save()
        except ValidationError:
            self.notifier.notify("Configuration is invalid, please check it", "error")
            return False
        except PersistenceError as exc:
            logger.error("Saving config failed: %s", exc)
            self.notifier.notify("Failed to save configuration", "error")
            return False
        self.notifier.notify("Configuration saved and applied", "success")
        return True

    def restore(self) -> bool:
        if not self.store.has_backup:
            self.notifier.notify("No configuration backup available", "warning")
            return False
        if self.confirm is not None and not self.confirm(RESTORE_PROMPT):
            return False
        self.store.restore_from_backup()
        self.notifier.notify("Configuration restored", "success")
        return True

    async def refresh(self) -> bool:
        """Reload config and rescan apps, discarding unsaved edits."""
        if self.tracker.has_unsaved_changes():
            if self.confirm is not None and not self.confirm(REFRESH_PROMPT):
                return False

        self.loading = True
        self.request_refresh()
        try:
            await asyncio.gather(self.store.load(), self._discover())
        finally:
            self.loading = False
        self.notifier.notify("Configuration reloaded", "success")
        self.request_refresh()
        return True

    def toggle_app(self, package_name: str) -> Optional[bool]:
        enabled = self.store.toggle_enabled(package_name)
        if enabled is not None:
            self.notifier.notify(
                f"{package_name} {'enabled' if enabled else 'disabled'}", "success"
            )
        return enabled

    def remove_app(self, package_name: str) -> bool:
        removed = self.store.remove_app(package_name)
        if removed:
            self.notifier.notify(f"Removed {package_name}", "success")
        return removed

    # --- filters ---

    def set_query(self, query: str) -> None:
        self.filters.query = query
        self.request_refresh()

    def set_show_system_apps(self, show: bool) -> None:
        self.filters.show_system_apps = show
        self.request_refresh()

    # --- dialog intents (forwarded to the workflow) ---

    def start_add(self) -> None:
        self.workflow.start_add()
        self.request_refresh()

    def pick_app(self, package_name: str) -> None:
        self.workflow.pick(package_name)
        self.filters.query = ""
        self.request_refresh()

    def start_edit(self, package_name: str) -> None:
        self.workflow.start_edit(package_name)
        self.request_refresh()

    def add_row(self) -> str:
        name = self.workflow.add_row()
        self.request_refresh()
        return name

    def remove_row(self, index: int) -> bool:
        removed = self.workflow.remove_row(index)
        self.request_refresh()
        return removed

    def commit(self, rows: Optional[List[str]] = None) -> bool:
        """Commit the dialog, optionally with the final input values."""
        if rows is not None:
            self.workflow.set_rows(rows)
        committed = self.workflow.commit()
        self.request_refresh()
        return committed

    def close_dialog(self) -> None:
        self.workflow.cancel()
        self.filters.query = ""
        self.request_refresh()
