# suppress_manager/config.py

from __future__ import annotations

import copy
import json
import logging
import os
from json import JSONDecodeError
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .activity_log import log_event
from .errors import CommandError, LoadError, PersistenceError, ValidationError
from .executor import CommandExecutor
from .files import FileProvider
from .models import AppSuppressEntry, SuppressionPolicy

logger = logging.getLogger(__name__)

# Module root on the device (same layout the service script expects)
DEFAULT_MODULE_PATH = os.environ.get("SUPPRESS_MODULE_PATH", "/data/adb/modules/AMMF")
CONFIG_RELATIVE_PATH = "module_settings/suppress_config.json"
BACKUP_SUFFIX = ".bak"
SERVICE_SCRIPT = "service.sh"
DEFAULT_PROCESS_SUFFIX = ":appbrand0"


def default_process_name(package_name: str) -> str:
    return f"{package_name}{DEFAULT_PROCESS_SUFFIX}"


def _default_raw_config() -> Dict[str, Any]:
    """
    Default config structure as plain dict (matches JSON).
    """
    return {"suppress_apps": {}}


def clean_process_names(names: Iterable[str]) -> List[str]:
    """
    Trim process names and drop blanks and non-strings, keeping order.
    """
    cleaned: List[str] = []
    for name in names:
        if not isinstance(name, str):
            continue
        name = name.strip()
        if name:
            cleaned.append(name)
    return cleaned


# ---------------------------------------------------------------------------
# Raw dict <-> dataclasses
# ---------------------------------------------------------------------------

def parse_policy(raw: Any) -> SuppressionPolicy:
    """
    Convert a raw dict (as loaded from JSON) into a SuppressionPolicy.

    Raises LoadError when the document itself is malformed. Entries that
    cannot be normalized are dropped with a warning so the result always
    passes validate_raw().
    """
    if not isinstance(raw, dict):
        raise LoadError("Config root is not a JSON object")

    apps_raw = raw.get("suppress_apps", {})
    if apps_raw is None:
        apps_raw = {}
    if not isinstance(apps_raw, dict):
        raise LoadError("'suppress_apps' is not a JSON object")

    apps: Dict[str, AppSuppressEntry] = {}
    for package_name, entry_raw in apps_raw.items():
        if not package_name or not isinstance(entry_raw, dict):
            logger.warning("Dropping malformed entry for %r", package_name)
            continue

        enabled = entry_raw.get("enabled")
        if not isinstance(enabled, bool):
            logger.warning("Dropping %s: 'enabled' is not a boolean", package_name)
            continue

        processes_raw = entry_raw.get("processes")
        processes = clean_process_names(processes_raw) if isinstance(processes_raw, list) else []
        if not processes:
            logger.warning("Dropping %s: no usable process names", package_name)
            continue

        apps[package_name] = AppSuppressEntry(enabled=enabled, processes=processes)

    return SuppressionPolicy(apps=apps)


def policy_to_raw(policy: SuppressionPolicy) -> Dict[str, Any]:
    """
    Convert SuppressionPolicy back into a plain dict ready for JSON dump.
    Values are copied as-is; validation is a separate step.
    """
    apps_raw: Dict[str, Any] = {}
    for package_name, entry in policy.apps.items():
        apps_raw[package_name] = {
            "enabled": entry.enabled,
            "processes": list(entry.processes),
        }
    return {"suppress_apps": apps_raw}


def parse_policy_text(text: str) -> SuppressionPolicy:
    try:
        raw = json.loads(text)
    except JSONDecodeError as e:
        raise LoadError(f"Config file is not valid JSON: {e}") from e
    return parse_policy(raw)


def dump_policy(policy: SuppressionPolicy) -> str:
    """
    Pretty-printed JSON, 2-space indent, keys in insertion order.
    """
    return json.dumps(policy_to_raw(policy), indent=2, ensure_ascii=False) + "\n"


def validate_raw(raw: Any) -> bool:
    """
    Schema check for a raw policy document. Pure.
    """
    if not isinstance(raw, Mapping):
        return False
    apps = raw.get("suppress_apps")
    if not isinstance(apps, Mapping):
        return False

    for package_name, entry in apps.items():
        if not package_name or not isinstance(entry, Mapping):
            return False
        if not isinstance(entry.get("enabled"), bool):
            return False

        processes = entry.get("processes")
        if not isinstance(processes, (list, tuple)) or len(processes) == 0:
            return False
        for process in processes:
            if not isinstance(process, str) or process.strip() == "":
                return False

    return True


def enabled_targets(policy: SuppressionPolicy) -> List[str]:
    """
    Flatten enabled entries into the argument list the suppressor daemon
    takes: [pkg, proc, proc, pkg2, proc, ...]. Disabled entries are skipped.
    """
    targets: List[str] = []
    for package_name, entry in policy.apps.items():
        if entry.enabled is not True:
            continue
        targets.append(package_name)
        targets.extend(p for p in entry.processes if isinstance(p, str))
    return targets


# ---------------------------------------------------------------------------
# ConfigStore
# ---------------------------------------------------------------------------

class ConfigStore:
    """
    Owns the suppression policy: load, validate, save, backup/restore and
    every mutation. Nothing else writes to `policy`.
    """

    def __init__(
        self,
        files: FileProvider,
        executor: Optional[CommandExecutor] = None,
        config_path: str = CONFIG_RELATIVE_PATH,
        module_path: str = DEFAULT_MODULE_PATH,
    ):
        self.files = files
        self.executor = executor
        self.config_path = config_path
        self.module_path = module_path.rstrip("/")

        self.policy = SuppressionPolicy()
        self.dirty = False
        self._backup_json: Optional[str] = None
        self._listeners: List[Callable[[], None]] = []

    @property
    def backup_path(self) -> str:
        return self.config_path + BACKUP_SUFFIX

    # --- change notification ---

    def subscribe(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        self.dirty = True
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # --- load / validate / save ---

    async def load(self) -> SuppressionPolicy:
        """
        Read and parse the config file. Never raises: any read or parse
        failure falls back to an empty policy. Takes a fresh backup.
        """
        try:
            text = await self.files.read_text(self.config_path)
            policy = parse_policy_text(text)
        except (OSError, CommandError, ValueError, LoadError) as exc:
            logger.warning("Could not load %s, using empty policy: %s", self.config_path, exc)
            log_event(
                "CONFIG_LOAD_FAILED",
                f"Falling back to empty policy: {exc}",
                {"path": self.config_path},
            )
            policy = parse_policy(_default_raw_config())
        else:
            log_event(
                "CONFIG_LOADED",
                f"Loaded {len(policy.apps)} app entries",
                {"path": self.config_path, "apps": len(policy.apps)},
            )

        self.policy = policy
        self.backup()
        self.dirty = False
        self._notify()
        return policy

    @staticmethod
    def validate(policy: Union[SuppressionPolicy, Mapping[str, Any]]) -> bool:
        """
        True when the policy matches the schema. Accepts either a
        SuppressionPolicy or a raw dict.
        """
        if isinstance(policy, SuppressionPolicy):
            return validate_raw(policy_to_raw(policy))
        return validate_raw(policy)

    async def validate_file(self) -> bool:
        """
        Schema check of the document on disk as written, before load()
        drops entries it cannot use. A missing or unreadable file is invalid.
        """
        try:
            text = await self.files.read_text(self.config_path)
            raw = json.loads(text)
        except (OSError, CommandError, ValueError) as exc:
            logger.warning("Could not read %s: %s", self.config_path, exc)
            return False
        return validate_raw(raw)

    async def save(self) -> None:
        """
        Validate, back up the current file to .bak, write the new document,
        then restart the apply service.

        Raises ValidationError (nothing written) or PersistenceError (after
        an attempted rollback to .bak).
        """
        if not self.validate(self.policy):
            log_event("CONFIG_SAVE_REJECTED", "Policy failed validation; nothing written", {})
            raise ValidationError("Suppression config is invalid")

        content = dump_policy(self.policy)

        try:
            had_original = await self.files.exists(self.config_path)
            if had_original:
                await self.files.copy(self.config_path, self.backup_path)
        except (OSError, CommandError) as exc:
            log_event("CONFIG_SAVE_FAILED", f"Backup copy failed: {exc}", {"stage": "backup"})
            raise PersistenceError(f"Could not back up {self.config_path}: {exc}") from exc

        stage = "write"
        try:
            await self.files.write_text(self.config_path, content)
            stage = "restart"
            await self.restart_service()
        except (OSError, CommandError) as exc:
            rolled_back = await self._rollback(had_original)
            log_event(
                "CONFIG_SAVE_FAILED",
                f"Save failed during {stage}: {exc}",
                {"stage": stage, "rolled_back": rolled_back},
            )
            raise PersistenceError(f"Saving config failed during {stage}: {exc}", rolled_back) from exc

        self.backup()
        self.dirty = False
        log_event(
            "CONFIG_SAVED",
            f"Saved {len(self.policy.apps)} app entries",
            {"path": self.config_path, "apps": len(self.policy.apps)},
        )
        self._notify()

    async def restart_service(self) -> None:
        if self.executor is None:
            logger.debug("No executor configured; skipping service restart")
            return
        await self.executor.run(["sh", f"{self.module_path}/{SERVICE_SCRIPT}", "restart"])

    async def _rollback(self, had_original: bool) -> bool:
        if not had_original:
            return False
        try:
            await self.files.copy(self.backup_path, self.config_path)
        except (OSError, CommandError) as exc:
            logger.error("Rollback from %s failed: %s", self.backup_path, exc)
            return False
        log_event("CONFIG_ROLLED_BACK", f"Restored {self.config_path} from backup", {})
        return True

    # --- snapshot ---

    def backup(self) -> None:
        """Replace the in-memory snapshot with the current policy."""
        self._backup_json = json.dumps(policy_to_raw(self.policy))

    @property
    def has_backup(self) -> bool:
        return self._backup_json is not None

    def snapshot(self) -> Optional[SuppressionPolicy]:
        """A fresh copy of the backup snapshot, or None."""
        if self._backup_json is None:
            return None
        return parse_policy(json.loads(self._backup_json))

    def restore_from_backup(self) -> bool:
        """
        Revert the working policy to the snapshot without touching disk.
        Returns False when there is no snapshot.
        """
        restored = self.snapshot()
        if restored is None:
            return False
        self.policy = restored
        self.dirty = False
        log_event("CONFIG_RESTORED", "Reverted to last loaded/saved config", {})
        self._notify()
        return True

    def replace_policy(self, policy: SuppressionPolicy, dirty: bool = True) -> None:
        """Swap in a whole policy (used when restoring a stashed edit)."""
        self.policy = copy.deepcopy(policy)
        self.dirty = dirty
        self._notify()

    # --- mutators ---

    def add_app(self, package_name: str, processes: Optional[Iterable[str]] = None) -> AppSuppressEntry:
        """
        Create (or overwrite) the entry for package_name, enabled, with the
        given processes or the default "<pkg>:appbrand0".
        """
        names = clean_process_names(processes or [])
        if not names:
            names = [default_process_name(package_name)]

        entry = AppSuppressEntry(enabled=True, processes=names)
        self.policy.apps[package_name] = entry
        log_event(
            "APP_CONFIG_ADDED",
            f"Added {package_name}",
            {"package": package_name, "processes": names},
        )
        self._changed()
        return entry

    def remove_app(self, package_name: str) -> bool:
        if package_name not in self.policy.apps:
            return False
        del self.policy.apps[package_name]
        log_event("APP_CONFIG_REMOVED", f"Removed {package_name}", {"package": package_name})
        self._changed()
        return True

    def set_enabled(self, package_name: str, enabled: bool) -> bool:
        entry = self.policy.apps.get(package_name)
        if entry is None:
            return False
        entry.enabled = bool(enabled)
        log_event(
            "APP_ENABLED_CHANGED",
            f"{package_name} {'enabled' if entry.enabled else 'disabled'}",
            {"package": package_name, "enabled": entry.enabled},
        )
        self._changed()
        return True

    def toggle_enabled(self, package_name: str) -> Optional[bool]:
        """Flip `enabled`; returns the new value or None if not configured."""
        entry = self.policy.apps.get(package_name)
        if entry is None:
            return None
        self.set_enabled(package_name, not entry.enabled)
        return entry.enabled

    def add_process(self, package_name: str, name: str) -> bool:
        entry = self.policy.apps.get(package_name)
        if entry is None:
            return False
        name = name.strip()
        if not name or name in entry.processes:
            return False
        entry.processes.append(name)
        self._processes_changed(package_name, entry)
        return True

    def remove_process(self, package_name: str, name: str) -> bool:
        """
        Remove one process name. Refuses to remove the last one.
        """
        entry = self.policy.apps.get(package_name)
        if entry is None or name not in entry.processes:
            return False
        if len(entry.processes) <= 1:
            logger.info("Not removing last process %s of %s", name, package_name)
            return False
        entry.processes.remove(name)
        self._processes_changed(package_name, entry)
        return True

    def replace_processes(self, package_name: str, names: Iterable[str]) -> bool:
        entry = self.policy.apps.get(package_name)
        if entry is None:
            return False
        cleaned = clean_process_names(names)
        if not cleaned:
            raise ValidationError(f"At least one process is required for {package_name}")
        entry.processes = cleaned
        self._processes_changed(package_name, entry)
        return True

    def _processes_changed(self, package_name: str, entry: AppSuppressEntry) -> None:
        log_event(
            "PROCESSES_CHANGED",
            f"{package_name} now suppresses {len(entry.processes)} process(es)",
            {"package": package_name, "processes": list(entry.processes)},
        )
        self._changed()
