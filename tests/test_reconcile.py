"""
Unit tests for the configured / available views.
"""

from __future__ import annotations

import pytest

from suppress_manager.models import AppSuppressEntry, DiscoveryFilters, InstalledApp, SuppressionPolicy
from suppress_manager.reconcile import available_view, configured_view, placeholder_app


@pytest.fixture
def apps() -> list:
    return [
        InstalledApp("com.tencent.mm", "WeChat", "8.0", False),
        InstalledApp("com.android.settings", "Settings", "14", True),
        InstalledApp("com.alipay", "alipay", "10.5", False),
        InstalledApp("com.android.phone", "Phone", "14", True),
        InstalledApp("org.mozilla.firefox", "Firefox", "120", False),
    ]


@pytest.fixture
def policy() -> SuppressionPolicy:
    return SuppressionPolicy(apps={
        "org.mozilla.firefox": AppSuppressEntry(True, ["org.mozilla.firefox:tab"]),
        "com.gone.app": AppSuppressEntry(False, ["com.gone.app:appbrand0"]),
    })


class TestConfiguredView:
    def test_policy_order_and_metadata(self, apps: list, policy: SuppressionPolicy) -> None:
        rows = configured_view(policy, apps)
        assert [r.package_name for r in rows] == ["org.mozilla.firefox", "com.gone.app"]
        assert rows[0].app.app_name == "Firefox"
        assert rows[0].entry is policy.apps["org.mozilla.firefox"]

    def test_missing_app_uses_placeholder(self, policy: SuppressionPolicy) -> None:
        rows = configured_view(policy, [])
        assert rows[1].app == placeholder_app("com.gone.app")
        assert rows[1].app.app_name == "com.gone.app"
        assert rows[1].app.version_name == "unknown"


class TestAvailableView:
    def test_excludes_configured_and_system_by_default(self, apps: list, policy: SuppressionPolicy) -> None:
        names = [a.app_name for a in available_view(apps, policy)]
        assert names == ["alipay", "WeChat"]

    def test_system_apps_sorted_after_user_apps(self, apps: list, policy: SuppressionPolicy) -> None:
        result = available_view(apps, policy, DiscoveryFilters(show_system_apps=True))
        assert [a.app_name for a in result] == ["alipay", "WeChat", "Phone", "Settings"]

    def test_accented_names_sort_with_their_base_letter(self) -> None:
        apps = [
            InstalledApp("com.z", "Zebra", "1", False),
            InstalledApp("com.e", "Éclair", "1", False),
            InstalledApp("com.a", "apple", "1", False),
            InstalledApp("com.e2", "eclair", "1", False),
        ]
        names = [a.app_name for a in available_view(apps, SuppressionPolicy())]
        assert names[0] == "apple"
        assert set(names[1:3]) == {"Éclair", "eclair"}
        assert names[3] == "Zebra"

    def test_search_matches_name_case_insensitively(self, apps: list, policy: SuppressionPolicy) -> None:
        result = available_view(apps, policy, DiscoveryFilters(query="WECHAT"))
        assert [a.package_name for a in result] == ["com.tencent.mm"]

    def test_search_matches_package_name(self, apps: list, policy: SuppressionPolicy) -> None:
        result = available_view(apps, policy, DiscoveryFilters(query="Android", show_system_apps=True))
        assert [a.package_name for a in result] == ["com.android.phone", "com.android.settings"]

    def test_configured_never_available(self, apps: list, policy: SuppressionPolicy) -> None:
        filters = DiscoveryFilters(query="firefox", show_system_apps=True)
        assert available_view(apps, policy, filters) == []

    def test_empty_query_matches_everything(self, apps: list) -> None:
        result = available_view(apps, SuppressionPolicy(), DiscoveryFilters(query="   ", show_system_apps=True))
        assert len(result) == len(apps)
