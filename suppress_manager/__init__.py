# suppress_manager/__init__.py
"""
Per-app process suppression config: load/validate/save the policy, discover
installed apps, and drive the add/edit dialogs.
"""

from .config import ConfigStore, enabled_targets
from .discovery import AppDiscoveryService
from .models import AppSuppressEntry, InstalledApp, SuppressionPolicy, WorkflowMode
from .page import PageView, SuppressManagerPage
from .workflow import EditWorkflow

__all__ = [
    "AppDiscoveryService",
    "AppSuppressEntry",
    "ConfigStore",
    "EditWorkflow",
    "InstalledApp",
    "PageView",
    "SuppressManagerPage",
    "SuppressionPolicy",
    "WorkflowMode",
    "enabled_targets",
]

__version__ = "0.1.0"
