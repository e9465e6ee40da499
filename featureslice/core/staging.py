"""Scratch output and the all-or-nothing commit of the destination tree."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from types import TracebackType

logger = logging.getLogger(__name__)


class StagingArea:
    """A scratch directory beside the destination, swapped in on commit.

    Usage:
        with StagingArea(dest) as staging:
            staging.write_text("components/Badge.tsx", text)
            staging.commit()

    Leaving the block without commit() discards the scratch tree, so the
    destination is never partially written.
    """

    def __init__(self, destination: Path) -> None:
        self._destination = destination.resolve()
        self._path: Path | None = None
        self._committed = False

    def __enter__(self) -> StagingArea:
        self._destination.parent.mkdir(parents=True, exist_ok=True)
        self._path = Path(
            tempfile.mkdtemp(prefix=f".{self._destination.name}.staging-", dir=self._destination.parent)
        )
        logger.debug("Staging into %s", self._path)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self._committed and self._path is not None and self._path.exists():
            shutil.rmtree(self._path)
            logger.debug("Discarded staging tree %s", self._path)

    @property
    def path(self) -> Path:
        if self._path is None:
            raise RuntimeError("StagingArea used outside its context manager")
        return self._path

    def write_text(self, relative: str, text: str) -> None:
        target = self.path / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8", newline="")

    def write_bytes(self, relative: str, data: bytes) -> None:
        target = self.path / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def commit(self) -> None:
        """Swap the staged tree into place.

        An existing destination is moved aside first and restored if the swap
        fails.
        """
        staged = self.path
        backup: Path | None = None
        if self._destination.exists():
            backup = Path(
                tempfile.mkdtemp(prefix=f".{self._destination.name}.backup-", dir=self._destination.parent)
            )
            backup.rmdir()
            self._destination.rename(backup)
        try:
            staged.rename(self._destination)
        except OSError:
            if backup is not None:
                backup.rename(self._destination)
            raise
        self._committed = True
        if backup is not None:
            shutil.rmtree(backup)
        logger.info("Committed %s", self._destination)
