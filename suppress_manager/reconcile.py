# suppress_manager/reconcile.py
"""
Merge the stored policy with discovery results into the two lists the page
shows: apps that are configured, and apps that could be added.
"""

from __future__ import annotations

import locale
import unicodedata
from typing import Dict, Iterable, List, Optional, Tuple

from .models import (
    ConfiguredApp,
    DiscoveryFilters,
    InstalledApp,
    SuppressionPolicy,
    UNKNOWN_VERSION,
)


def placeholder_app(package_name: str) -> InstalledApp:
    """
    Stand-in for a configured package that discovery has not reported
    (yet, or at all).
    """
    return InstalledApp(
        package_name=package_name,
        app_name=package_name,
        version_name=UNKNOWN_VERSION,
        is_system=False,
        icon_path=None,
    )


def _index(apps: Iterable[InstalledApp]) -> Dict[str, InstalledApp]:
    return {app.package_name: app for app in apps}


def configured_view(policy: SuppressionPolicy, apps: Iterable[InstalledApp]) -> List[ConfiguredApp]:
    """
    One row per policy entry, in policy order.
    """
    by_package = _index(apps)
    rows: List[ConfiguredApp] = []
    for package_name, entry in policy.apps.items():
        app = by_package.get(package_name) or placeholder_app(package_name)
        rows.append(ConfiguredApp(package_name=package_name, entry=entry, app=app))
    return rows


def matches_query(app: InstalledApp, query: str) -> bool:
    """Case-insensitive substring match on app name or package name."""
    q = query.strip().casefold()
    if not q:
        return True
    return q in app.app_name.casefold() or q in app.package_name.casefold()


def collation_key(name: str) -> Tuple[str, str]:
    """
    Sort key for app names. Accents and case are ignored first, so
    "Éclair" sorts with "eclair" even under the C locale; ties fall back
    to the LC_COLLATE order of the full name.
    """
    folded = unicodedata.normalize("NFKD", name.casefold())
    base = "".join(c for c in folded if not unicodedata.combining(c))
    return locale.strxfrm(base), locale.strxfrm(folded)


def available_view(
    apps: Iterable[InstalledApp],
    policy: SuppressionPolicy,
    filters: Optional[DiscoveryFilters] = None,
) -> List[InstalledApp]:
    """
    Installed apps that are not configured yet, filtered and sorted:
    non-system first, then by app name in the current locale's order.
    """
    filters = filters or DiscoveryFilters()
    configured = policy.apps.keys()

    result = [
        app for app in apps
        if app.package_name not in configured
        and (filters.show_system_apps or not app.is_system)
        and matches_query(app, filters.query)
    ]
    result.sort(key=lambda app: (app.is_system, collation_key(app.app_name), app.app_name))
    return result
