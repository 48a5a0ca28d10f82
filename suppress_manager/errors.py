# suppress_manager/errors.py

from __future__ import annotations

from typing import List, Optional


class SuppressManagerError(Exception):
    """Base class for all errors raised by suppress_manager."""


class CommandError(SuppressManagerError, RuntimeError):
    """
    A device command failed (non-zero exit, timeout, or missing binary).
    """

    def __init__(self, args: List[str], message: str, returncode: Optional[int] = None):
        self.command = list(args)
        self.returncode = returncode
        super().__init__(f"command failed (code {returncode}): {' '.join(args)}\n{message}")


class LoadError(SuppressManagerError):
    """The policy document could not be read or parsed."""


class ValidationError(SuppressManagerError, ValueError):
    """The policy (or a draft) violates the schema."""


class PersistenceError(SuppressManagerError):
    """
    Backup, write, or service restart failed during save.
    `rolled_back` tells whether the .bak copy was put back in place.
    """

    def __init__(self, message: str, rolled_back: bool = False):
        self.rolled_back = rolled_back
        super().__init__(message)


class DiscoveryError(SuppressManagerError):
    """Metadata for a single package could not be fetched."""


class WorkflowError(SuppressManagerError, ValueError):
    """A workflow trigger is not valid in the current state."""
