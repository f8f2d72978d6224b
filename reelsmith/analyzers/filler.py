"""Filler-word analyzer.

This is a loudness heuristic, not speech recognition: stretches whose RMS
level sits between the configured threshold and an upper bound (quieter than
full speech, louder than silence) for a short while are treated as fillers.
"""

import logging
from pathlib import Path

from reelsmith import ffutil
from reelsmith.analyzers.segments import FILLER, detect
from reelsmith.manifest import FillerCutConfig
from reelsmith.models import Segment

log = logging.getLogger(__name__)


def analyze_fillers(input_path: Path, config: FillerCutConfig) -> list[Segment]:
    """Return removal segments labeled "filler" for the file's audio track."""
    trace = ffutil.measure_levels(input_path, interval=config.sample_interval)
    if not trace:
        log.info("No loudness samples for %s; skipping filler detection", input_path.name)
        return []

    segments = detect(
        trace,
        threshold_db=config.threshold_db,
        min_duration=config.min_duration,
        max_duration=config.max_duration,
        cause=FILLER,
        upper_db=config.upper_db,
    )
    log.debug(
        "%d filler candidates in %d samples (band %.1f..%.1f dB)",
        len(segments), len(trace), config.threshold_db, config.upper_db,
    )
    return segments
