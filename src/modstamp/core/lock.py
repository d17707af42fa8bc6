"""Exclusive per-destination lock shared across processes."""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
import tempfile
from types import TracebackType

from modstamp.core.errors import DestinationBusy, IOFailure

logger = logging.getLogger(__name__)


def lock_path_for(destination: Path, lock_dir: Path | None = None) -> Path:
    """Lock file location for *destination*, kept outside the destination itself."""
    digest = hashlib.sha256(str(destination.resolve()).encode("utf-8")).hexdigest()[:16]
    base = lock_dir if lock_dir is not None else Path(tempfile.gettempdir())
    return base / f"modstamp-{digest}.lock"


class DestinationLock:
    """Context manager holding the lock for one destination.

    The lock file is created with ``O_EXCL``, so a second run targeting the same
    destination fails with :class:`DestinationBusy` instead of waiting.
    """

    def __init__(self, destination: Path, lock_dir: Path | None = None) -> None:
        self.destination = destination
        self.path = lock_path_for(destination, lock_dir)
        self._held = False

    def acquire(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            raise DestinationBusy(
                f"destination {self.destination} is in use by another run "
                f"(remove {self.path} if that run is no longer alive)"
            ) from None
        except OSError as exc:
            raise IOFailure(f"cannot create lock file {self.path}: {exc}") from exc
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(f"{os.getpid()}\n{self.destination.resolve()}\n")
        self._held = True
        logger.debug("Acquired lock %s for %s", self.path, self.destination)

    def release(self) -> None:
        if not self._held:
            return
        self.path.unlink(missing_ok=True)
        self._held = False
        logger.debug("Released lock %s", self.path)

    def __enter__(self) -> DestinationLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
