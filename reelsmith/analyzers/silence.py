"""Silence detection analyzer."""

from pathlib import Path

from reelsmith import ffutil
from reelsmith.analyzers.segments import SILENCE
from reelsmith.manifest import SilenceCutConfig
from reelsmith.models import Segment


def analyze_silence(
    input_path: Path,
    config: SilenceCutConfig,
    duration: float | None = None,
) -> list[Segment]:
    """Detect silence and return removal segments labeled "silence".

    Uses ffmpeg's silencedetect events. Silence running to the end of the
    file is closed at ``duration`` (probed when not supplied). Ranges shorter
    than ``config.min_duration`` are dropped.
    """
    if duration is None:
        probe = ffutil.probe(input_path)
        if not probe.has_audio:
            raise ffutil.NoAudioStreamError(
                f"No audio stream found in {input_path}; silence detection requires audio"
            )
        duration = probe.duration

    silent_ranges = ffutil.detect_silence(
        input_path,
        threshold_db=config.threshold_db,
        min_duration=config.min_duration,
        duration=duration,
    )

    segments = []
    for sr in silent_ranges:
        end = min(sr.end, duration)
        if end - sr.start >= config.min_duration:
            segments.append(Segment(start=sr.start, end=end, label=SILENCE))
    return sorted(segments, key=lambda s: s.start)
