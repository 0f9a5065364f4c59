"""Per-build scratch directories.

Every build gets its own ``generated-<timestamp>-<suffix>`` directory under
the configured work dir (the system temp dir by default). The directory is
created when the ``Workspace`` is entered and removed exactly once when it
is exited, whether the build succeeded, failed or was cancelled.
"""

from __future__ import annotations

import asyncio
import shutil
import tempfile
import time
import uuid
from pathlib import Path

from assembler.utils import print_warning

WORKSPACE_PREFIX = "generated"
_MAX_ATTEMPTS = 5


class WorkspaceError(Exception):
    """Raised when a workspace cannot be created."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


def _candidate_name() -> str:
    return f"{WORKSPACE_PREFIX}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class Workspace:
    """Async context manager owning one build directory.

    Usage::

        async with Workspace(config.work_dir) as workspace:
            await render_tree(preset.base_path, workspace.path, context)

    ``path`` is only valid inside the ``async with`` block.
    """

    def __init__(self, parent: str | Path | None = None) -> None:
        self.parent = Path(parent) if parent else Path(tempfile.gettempdir())
        self._path: Path | None = None
        self._removed = False

    @property
    def path(self) -> Path:
        if self._path is None:
            raise WorkspaceError("Workspace has not been created yet")
        return self._path

    def create(self) -> Path:
        """Create a fresh, uniquely named directory and return it.

        Raises:
            WorkspaceError: If called twice or no unique name could be claimed.
        """
        if self._path is not None:
            raise WorkspaceError("Workspace already created", path=self._path)

        self.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(_MAX_ATTEMPTS):
            candidate = self.parent / _candidate_name()
            try:
                candidate.mkdir(exist_ok=False)
            except FileExistsError:
                continue
            self._path = candidate
            return candidate

        raise WorkspaceError(
            f"Could not create a unique workspace under {self.parent}", path=self.parent
        )

    def remove(self) -> bool:
        """Delete the directory tree; returns ``False`` if it was already removed.

        Errors are reported as warnings and never raised.
        """
        if self._path is None or self._removed:
            return False
        self._removed = True
        try:
            shutil.rmtree(self._path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            print_warning(f"Could not remove workspace {self._path}: {exc}")
            return False
        return True

    async def __aenter__(self) -> "Workspace":
        self.create()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await asyncio.shield(asyncio.to_thread(self.remove))
