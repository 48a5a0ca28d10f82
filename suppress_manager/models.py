# suppress_manager/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Literal, Optional

PackageKind = Literal["third-party", "system"]
NotifyLevel = Literal["info", "success", "warning", "error"]

UNKNOWN_VERSION = "unknown"


@dataclass
class AppSuppressEntry:
    """
    Suppression settings for one application.
    Keyed by package name in SuppressionPolicy.apps.
    """
    enabled: bool = True
    processes: List[str] = field(default_factory=list)


@dataclass
class SuppressionPolicy:
    """
    Top-level object representing suppress_config.json.
    Insertion order of `apps` is the order written to disk.
    """
    apps: Dict[str, AppSuppressEntry] = field(default_factory=dict)  # key: package name


@dataclass(frozen=True)
class InstalledApp:
    """
    Transient metadata for an installed package. Never persisted.
    """
    package_name: str
    app_name: str
    version_name: str = UNKNOWN_VERSION
    is_system: bool = False
    icon_path: Optional[str] = None


@dataclass(frozen=True)
class ConfiguredApp:
    """
    One row of the configured view: a policy entry joined with whatever
    discovery knows about the package.
    """
    package_name: str
    entry: AppSuppressEntry
    app: InstalledApp


@dataclass
class DiscoveryFilters:
    """
    Filters for the "available apps" list in the add-app dialog.
    """
    query: str = ""
    show_system_apps: bool = False


@dataclass
class DiscoveryBatchState:
    """
    Accumulated results of a single discovery run.
    """
    apps: List[InstalledApp] = field(default_factory=list)
    cancelled: bool = False
    batches_done: int = 0


class WorkflowMode(Enum):
    IDLE = "idle"
    SELECTING_APP = "selecting_app"
    CONFIGURING_NEW = "configuring_new"
    EDITING_EXISTING = "editing_existing"


@dataclass
class WorkflowState:
    """
    State of the add/edit dialog. `package_name` is set only in
    CONFIGURING_NEW and EDITING_EXISTING.
    """
    mode: WorkflowMode = WorkflowMode.IDLE
    package_name: Optional[str] = None
    draft_processes: List[str] = field(default_factory=list)
