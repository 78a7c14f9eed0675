"""Temporary workspaces for cloned repositories.

A `WorkspaceRegistry` owns a temp root and every directory allocated below
it. Release is idempotent and never raises, so the normal-path `finally`
and the interrupt handler may both release the same workspace.
"""

from __future__ import annotations

import secrets
import shutil
import signal
import string
import sys
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from repo_merger.config import TEMP_ROOT_NAME, Workspace
from repo_merger.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import FrameType

_BASE36 = string.digits + string.ascii_lowercase
_MAX_ALLOCATION_ATTEMPTS = 16


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def unique_suffix() -> str:
    """Return a collision resistant suffix: base36 milliseconds plus random hex."""
    return f"{_base36(time.time_ns() // 1_000_000)}{secrets.token_hex(4)}"


def default_temp_root() -> Path:
    """Return the process-wide temp root under the system temp directory."""
    return Path(tempfile.gettempdir()) / TEMP_ROOT_NAME


class WorkspaceRegistry:
    """Allocate, track and delete temporary workspaces.

    Attributes:
        root: Directory under which every workspace is created.
    """

    def __init__(self, root: Path | str | None = None) -> None:
        self.root = Path(root) if root else default_temp_root()
        self.root.mkdir(parents=True, exist_ok=True)
        self._entries: dict[Path, Workspace] = {}
        self._previous_handlers: dict[int, Any] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, workspace: object) -> bool:
        return isinstance(workspace, Workspace) and self.is_registered(workspace)

    def is_registered(self, workspace: Workspace) -> bool:
        return workspace.path in self._entries

    def allocate(self, prefix: str = "repo") -> Workspace:
        """Create and register a new empty workspace directory.

        Args:
            prefix (str): label used as the directory name prefix

        Raises:
            FileExistsError: if no free name was found after repeated attempts

        Returns:
            Workspace: the registered workspace
        """
        for _ in range(_MAX_ALLOCATION_ATTEMPTS):
            path = self.root / f"{prefix}-{unique_suffix()}"
            try:
                path.mkdir(parents=True)
            except FileExistsError:
                continue
            workspace = Workspace(path=path, label=prefix)
            self._entries[path] = workspace
            logger.debug("workspace_allocated", path=str(path))
            return workspace
        raise FileExistsError(f"could not allocate a workspace under {self.root}")

    def release(self, workspace: Workspace) -> None:
        """Delete a workspace and unregister it. Safe to call repeatedly."""
        # delete first: an interrupt during rmtree still finds the entry in release_all
        shutil.rmtree(workspace.path, ignore_errors=True)
        if self._entries.pop(workspace.path, None) is not None:
            logger.debug("workspace_released", path=str(workspace.path))

    def release_all(self) -> None:
        """Release every registered workspace."""
        for workspace in list(self._entries.values()):
            self.release(workspace)

    @contextmanager
    def workspace(self, prefix: str = "repo") -> Iterator[Workspace]:
        """Allocate a workspace for the duration of a `with` block."""
        ws = self.allocate(prefix)
        try:
            yield ws
        finally:
            self.release(ws)

    def handle_interrupt(self, signum: int, frame: FrameType | None) -> None:  # noqa: ARG002
        """Signal handler: remove every workspace and exit successfully."""
        logger.warning("interrupted", signal=signal.Signals(signum).name, workspaces=len(self._entries))
        self.release_all()
        sys.exit(0)

    def install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to `handle_interrupt`."""
        for name in ("SIGINT", "SIGTERM"):
            signum = getattr(signal, name, None)
            if signum is None:
                continue
            try:
                self._previous_handlers[signum] = signal.signal(signum, self.handle_interrupt)
            except (ValueError, OSError) as e:
                # not the main thread, or unsupported on this platform
                logger.debug("signal_handler_not_installed", signal=name, error=str(e))

    def restore_signal_handlers(self) -> None:
        """Put back the handlers replaced by `install_signal_handlers`."""
        while self._previous_handlers:
            signum, handler = self._previous_handlers.popitem()
            try:
                signal.signal(signum, handler)
            except (ValueError, OSError, TypeError) as e:
                logger.debug("signal_handler_not_restored", signal=signum, error=str(e))
