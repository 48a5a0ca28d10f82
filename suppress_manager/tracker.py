# suppress_manager/tracker.py

from __future__ import annotations

import asyncio
import json
import logging
from typing import Callable, Dict, Optional

from .activity_log import log_event
from .config import ConfigStore, dump_policy, parse_policy_text, policy_to_raw
from .errors import LoadError
from .models import SuppressionPolicy

logger = logging.getLogger(__name__)

PAGE_ID = "suppress_manager"
UNSAVED_CHANGES_PROMPT = "There are unsaved changes. Leave anyway?"

ConfirmFn = Callable[[str], bool]


class SessionStore:
    """
    Session-scoped key/value store for text snapshots. Lives as long as the
    shell that hosts the page, so it survives page navigation.
    """

    def __init__(self):
        self._items: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def pop(self, key: str) -> Optional[str]:
        return self._items.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._items


class ChangeTracker:
    """
    Knows whether the working policy differs from the last backup, and
    carries an unsaved edit across page deactivation/reactivation.
    """

    def __init__(
        self,
        store: ConfigStore,
        session: SessionStore,
        page_id: str = PAGE_ID,
        confirm: Optional[ConfirmFn] = None,
    ):
        self.store = store
        self.session = session
        self.page_id = page_id
        self.confirm = confirm

    @property
    def snapshot_key(self) -> str:
        return f"{self.page_id}_temp_config"

    @staticmethod
    def is_dirty(policy: SuppressionPolicy, backup: Optional[SuppressionPolicy]) -> bool:
        """True iff the two policies are not structurally equal."""
        if backup is None:
            return False
        return json.dumps(policy_to_raw(policy)) != json.dumps(policy_to_raw(backup))

    def has_unsaved_changes(self) -> bool:
        return self.is_dirty(self.store.policy, self.store.snapshot())

    def on_deactivate(self) -> bool:
        """
        Called before the page is left. Returns False when the user chose
        to stay, in which case nothing is stashed.
        """
        if not self.has_unsaved_changes():
            return True

        if self.confirm is not None and not self.confirm(UNSAVED_CHANGES_PROMPT):
            logger.info("Deactivation cancelled by user")
            return False

        self.session.set(self.snapshot_key, dump_policy(self.store.policy))
        log_event(
            "SNAPSHOT_STASHED",
            "Stashed unsaved suppression config",
            {"page": self.page_id, "apps": len(self.store.policy.apps)},
        )
        return True

    def on_activate(self) -> bool:
        """
        Restore a stashed edit into the store, if there is one.
        Returns True when something was restored.
        """
        text = self.session.pop(self.snapshot_key)
        if text is None:
            return False

        try:
            policy = parse_policy_text(text)
        except LoadError as exc:
            logger.warning("Discarding unreadable stashed config: %s", exc)
            return False

        self.store.replace_policy(policy, dirty=self.is_dirty(policy, self.store.snapshot()))
        log_event(
            "SNAPSHOT_RESTORED",
            "Restored unsaved suppression config",
            {"page": self.page_id, "apps": len(policy.apps)},
        )
        return True


class RefreshScheduler:
    """
    Coalesces refresh requests: any number of request() calls before the
    loop gets to run produce a single call to `refresh`.
    """

    def __init__(self, refresh: Callable[[], None], loop: Optional[asyncio.AbstractEventLoop] = None):
        self.refresh = refresh
        self._loop = loop
        self._handle: Optional[asyncio.Handle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def request(self) -> None:
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # no loop: plain synchronous caller
                self.cancel()
                self.refresh()
                return
        self.cancel()
        self._handle = loop.call_soon(self._run)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _run(self) -> None:
        self._handle = None
        self.refresh()
