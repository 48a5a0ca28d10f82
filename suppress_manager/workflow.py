# suppress_manager/workflow.py

from __future__ import annotations

import logging
from typing import List, Optional

from .config import ConfigStore, clean_process_names, default_process_name
from .errors import WorkflowError
from .models import WorkflowMode, WorkflowState
from .notify import LogNotifier, Notifier

logger = logging.getLogger(__name__)

_DRAFT_MODES = (WorkflowMode.CONFIGURING_NEW, WorkflowMode.EDITING_EXISTING)


class EditWorkflow:
    """
    State machine behind the add-app and edit-processes dialogs.

        IDLE --start_add--> SELECTING_APP --pick(p)--> CONFIGURING_NEW(p)
        IDLE --start_edit(p)--> EDITING_EXISTING(p)
        CONFIGURING_NEW / EDITING_EXISTING --commit--> IDLE (store mutated)
        any --cancel--> IDLE (nothing mutated)

    Structurally invalid triggers raise WorkflowError. An empty commit or
    removing the last row leaves the state unchanged and posts a warning.
    """

    def __init__(self, store: ConfigStore, notifier: Optional[Notifier] = None):
        self.store = store
        self.notifier = notifier or LogNotifier()
        self.state = WorkflowState()

    # --- accessors ---

    @property
    def mode(self) -> WorkflowMode:
        return self.state.mode

    @property
    def package_name(self) -> Optional[str]:
        return self.state.package_name

    @property
    def draft(self) -> List[str]:
        return list(self.state.draft_processes)

    @property
    def can_remove_row(self) -> bool:
        return self.mode in _DRAFT_MODES and len(self.state.draft_processes) > 1

    def _require(self, *modes: WorkflowMode) -> None:
        if self.state.mode not in modes:
            allowed = ", ".join(m.value for m in modes)
            raise WorkflowError(f"Not allowed in state {self.state.mode.value} (expected {allowed})")

    def _reset(self) -> None:
        self.state = WorkflowState()

    # --- transitions ---

    def start_add(self) -> None:
        self._require(WorkflowMode.IDLE)
        self.state = WorkflowState(mode=WorkflowMode.SELECTING_APP)

    def pick(self, package_name: str) -> None:
        self._require(WorkflowMode.SELECTING_APP)
        if package_name in self.store.policy.apps:
            raise WorkflowError(f"{package_name} is already configured")
        self.state = WorkflowState(
            mode=WorkflowMode.CONFIGURING_NEW,
            package_name=package_name,
            draft_processes=[default_process_name(package_name)],
        )

    def start_edit(self, package_name: str) -> None:
        self._require(WorkflowMode.IDLE)
        entry = self.store.policy.apps.get(package_name)
        if entry is None:
            raise WorkflowError(f"{package_name} is not configured")
        self.state = WorkflowState(
            mode=WorkflowMode.EDITING_EXISTING,
            package_name=package_name,
            draft_processes=list(entry.processes),
        )

    def cancel(self) -> None:
        """Close whatever dialog is open. No-op when idle."""
        if self.state.mode is not WorkflowMode.IDLE:
            logger.debug("Workflow cancelled from %s", self.state.mode.value)
        self._reset()

    # --- draft editing ---

    def add_row(self) -> str:
        """Append a row named "<pkg>:process<n>", n = current row count."""
        self._require(*_DRAFT_MODES)
        name = f"{self.state.package_name}:process{len(self.state.draft_processes)}"
        self.state.draft_processes.append(name)
        return name

    def remove_row(self, index: int) -> bool:
        self._require(*_DRAFT_MODES)
        rows = self.state.draft_processes
        if not 0 <= index < len(rows):
            raise WorkflowError(f"No row {index}")
        if len(rows) <= 1:
            return False
        del rows[index]
        return True

    def set_row(self, index: int, value: str) -> None:
        self._require(*_DRAFT_MODES)
        rows = self.state.draft_processes
        if not 0 <= index < len(rows):
            raise WorkflowError(f"No row {index}")
        rows[index] = value

    def set_rows(self, values: List[str]) -> None:
        """Replace the whole draft, e.g. with the current input values."""
        self._require(*_DRAFT_MODES)
        self.state.draft_processes = list(values)

    def commit(self) -> bool:
        """
        Apply the draft to the store and return to IDLE.
        Returns False (and stays put) when no usable process name is left.
        """
        self._require(*_DRAFT_MODES)
        processes = clean_process_names(self.state.draft_processes)
        if not processes:
            self.notifier.notify("At least one process is required", "warning")
            return False

        package_name = self.state.package_name
        if self.state.mode is WorkflowMode.CONFIGURING_NEW:
            self.store.add_app(package_name, processes)
            self.notifier.notify(f"Added {package_name}", "success")
        elif self.store.replace_processes(package_name, processes):
            self.notifier.notify(f"Updated {package_name}", "success")
        else:
            self.notifier.notify(f"{package_name} is no longer configured", "warning")

        self._reset()
        return True
