"""Turn removal segments into the keep segments that survive them."""

from typing import Sequence

from reelsmith.models import Segment, TimeRange


def build_keep_segments(
    removals: Sequence[Segment | TimeRange],
    total_duration: float,
    padding_before: float = 0.0,
    padding_after: float = 0.0,
) -> list[TimeRange]:
    """Return the complement of ``removals`` over ``[0, total_duration]``.

    ``removals`` must be sorted by start. Each removal is widened by
    ``padding_before`` / ``padding_after`` before it is cut out, and every
    boundary is clamped to the timeline. No removals gives the whole
    timeline back; removals covering everything give an empty list.
    """
    if total_duration <= 0:
        return []

    keep: list[TimeRange] = []
    cursor = 0.0
    for removal in removals:
        cut_start = min(max(removal.start - padding_before, 0.0), total_duration)
        cut_end = min(max(removal.end + padding_after, 0.0), total_duration)
        if cut_start > cursor:
            keep.append(TimeRange(start=cursor, end=cut_start))
        cursor = max(cursor, cut_end)

    if cursor < total_duration:
        keep.append(TimeRange(start=cursor, end=total_duration))

    return keep
