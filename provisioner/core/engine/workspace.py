"""
Working area — the run's private scratch directory.

One directory per configuration, deterministically named. Whatever is
left from an earlier (crashed or concurrent-looking) run is never
trusted: ``prepare`` wipes it before recreating the directory.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def _make_writable_and_retry(func, path, _exc) -> None:
    """rmtree error hook: clear read-only bits (common on Windows) and retry once."""
    os.chmod(path, stat.S_IWRITE | stat.S_IREAD | stat.S_IEXEC)
    func(path)


class WorkingArea:
    """Exclusively owned scratch directory for one pipeline run.

    Usable as a context manager: entering prepares the directory,
    leaving destroys it on every exit path.
    """

    def __init__(self, path: Path | str):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def prepare(self) -> Path:
        """Destroy any stale copy, then create the directory fresh.

        Raises:
            OSError: The directory could not be removed or created.
        """
        if self._path.exists():
            logger.info("Removing stale working area %s", self._path)
            self._remove()
        self._path.mkdir(parents=True)
        logger.debug("Working area ready: %s", self._path)
        return self._path

    def destroy(self) -> None:
        """Remove the directory recursively. Missing is fine.

        Raises:
            OSError: The directory exists but could not be removed.
        """
        if not self._path.exists():
            return
        self._remove()
        logger.debug("Working area removed: %s", self._path)

    def file(self, name: str) -> Path:
        return self._path / name

    def _remove(self) -> None:
        if self._path.is_dir() and not self._path.is_symlink():
            if sys.version_info >= (3, 12):
                shutil.rmtree(self._path, onexc=_make_writable_and_retry)
            else:
                shutil.rmtree(self._path, onerror=_make_writable_and_retry)
        else:
            self._path.unlink()

    def __enter__(self) -> WorkingArea:
        self.prepare()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.destroy()

    def __repr__(self) -> str:
        return f"<WorkingArea path={str(self._path)!r}>"
