"""Energy-gate segment detection over a loudness trace."""

from typing import Sequence

from reelsmith.models import LevelSample, Segment

SILENCE = "silence"
FILLER = "filler"


def _matches(level: float, cause: str, threshold_db: float, upper_db: float) -> bool:
    if cause == SILENCE:
        return level < threshold_db
    return threshold_db < level < upper_db


def detect(
    trace: Sequence[LevelSample],
    threshold_db: float,
    min_duration: float,
    max_duration: float | None = None,
    *,
    cause: str = SILENCE,
    upper_db: float = -10.0,
) -> list[Segment]:
    """Scan a time-ordered trace and return removal segments of one cause.

    A candidate opens on the first sample meeting the condition (below
    ``threshold_db`` for silence; strictly between ``threshold_db`` and
    ``upper_db`` for filler) and closes on the first sample that fails it.
    A candidate still open at the end closes at the last timestamp. Only
    candidates lasting at least ``min_duration`` and, when given, at most
    ``max_duration`` are returned.
    """
    if cause not in (SILENCE, FILLER):
        raise ValueError(f"unknown segment cause {cause!r}")

    def keep(start: float, end: float) -> bool:
        duration = end - start
        if duration <= 0 or duration < min_duration:
            return False
        return max_duration is None or duration <= max_duration

    segments: list[Segment] = []
    open_at: float | None = None
    for sample in trace:
        if _matches(sample.level_db, cause, threshold_db, upper_db):
            if open_at is None:
                open_at = sample.time
        elif open_at is not None:
            if keep(open_at, sample.time):
                segments.append(Segment(start=open_at, end=sample.time, label=cause))
            open_at = None

    if open_at is not None and trace:
        last = trace[-1].time
        if keep(open_at, last):
            segments.append(Segment(start=open_at, end=last, label=cause))

    return segments
