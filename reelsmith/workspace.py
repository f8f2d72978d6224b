"""Request-scoped intermediate files."""

import logging
import time
import uuid
from pathlib import Path

log = logging.getLogger(__name__)


class Workspace:
    """Names intermediate artifacts and guarantees they are deleted.

    Every path handed out by :meth:`path_for` is removed when the workspace
    closes, unless it was passed to :meth:`keep`. Use as a context manager so
    cleanup runs on every exit path.
    """

    def __init__(self, directory: Path, basename: str):
        self.directory = Path(directory)
        self.basename = basename
        self._issued: list[Path] = []
        self._kept: set[Path] = set()

    def __enter__(self) -> "Workspace":
        self.directory.mkdir(parents=True, exist_ok=True)
        return self

    def __exit__(self, *exc) -> None:
        self.cleanup()

    def path_for(self, stage: str, ext: str = "mp4") -> Path:
        stamp = int(time.time() * 1000)
        salt = uuid.uuid4().hex[:6]
        path = self.directory / f"{self.basename}-{stage}-{stamp}-{salt}.{ext}"
        self._issued.append(path)
        return path

    def keep(self, path: Path) -> None:
        self._kept.add(Path(path))

    def discard(self, path: Path) -> None:
        """Delete one issued artifact now (e.g. the output of a failed stage)."""
        _remove(path)

    @property
    def issued(self) -> list[Path]:
        return list(self._issued)

    def cleanup(self) -> None:
        for path in self._issued:
            if path not in self._kept:
                _remove(path)


def _remove(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        log.warning("Could not delete intermediate %s: %s", path, e)
