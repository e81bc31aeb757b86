from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional

from PySide6.QtCore import QFileSystemWatcher

logger = logging.getLogger(__name__)

# Directory levels below patterns/ that can hold or gain a problem file
_WATCH_GLOBS = ("*", "*/problem-*", "*/problem-*/*")


class WorkspaceWatcher:
    """Calls ``on_change`` whenever the workspace's patterns/ tree changes.

    QFileSystemWatcher is not recursive, so every directory down to the dated
    problem folders is registered, and the set is rebuilt after each change.
    """

    def __init__(self, root: Path, on_change: Callable[[], None]) -> None:
        self._root = root
        self._on_change: Optional[Callable[[], None]] = on_change
        self._watcher = QFileSystemWatcher()
        self._watcher.directoryChanged.connect(self._changed)
        self.sync_paths()

    def watched_directories(self) -> List[str]:
        return sorted(self._watcher.directories())

    def sync_paths(self) -> None:
        wanted = set(self._directories())
        current = set(self._watcher.directories())
        stale = current - wanted
        if stale:
            self._watcher.removePaths(sorted(stale))
        new = wanted - current
        if new:
            failed = self._watcher.addPaths(sorted(new))
            if failed:
                logger.warning("Could not watch %d directories under %s", len(failed), self._root)

    def dispose(self) -> None:
        self._on_change = None
        watched = self._watcher.directories()
        if watched:
            self._watcher.removePaths(watched)

    def _directories(self) -> List[str]:
        if not self._root.is_dir():
            return []
        dirs = [self._root]
        base = self._root / "patterns"
        if base.is_dir():
            dirs.append(base)
            for pattern in _WATCH_GLOBS:
                dirs.extend(p for p in base.glob(pattern) if p.is_dir())
        return [str(d) for d in dirs]

    def _changed(self, path: str) -> None:
        logger.debug("Workspace changed: %s", path)
        self.sync_paths()
        if self._on_change is not None:
            self._on_change()
