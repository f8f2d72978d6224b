"""Audio overlay editor: mixes a background track under the original audio."""

import math
from pathlib import Path

from reelsmith import ffutil
from reelsmith.errors import ValidationError
from reelsmith.graph import Command, Filter, FilterGraph
from reelsmith.manifest import AudioOverlaySpec, EncodeConfig
from reelsmith.models import ProbeResult, TimeRange

# aloop needs a buffer size; this is large enough for any whole track.
LOOP_BUFFER_SAMPLES = 2_000_000_000


def overlay_window(spec: AudioOverlaySpec, clip_duration: float) -> TimeRange:
    """The span of the clip the overlay covers, clamped to the clip."""
    start = max(spec.start_time, 0.0)
    end = clip_duration if spec.end_time is None else min(spec.end_time, clip_duration)
    if start >= end:
        raise ValidationError(
            f"overlay start {start}s must be before its end {end}s (clip is {clip_duration:.2f}s)"
        )
    return TimeRange(start=start, end=end)


def loop_count(target: float, track_duration: float) -> int:
    """Extra repeats needed so the looped track runs past ``target``."""
    if track_duration <= 0 or track_duration >= target:
        return 0
    return math.ceil(target / track_duration)


def build_overlay_graph(
    spec: AudioOverlaySpec, window: TimeRange, track: ProbeResult
) -> FilterGraph:
    """Input 0 is the clip, input 1 the background track."""
    length = window.duration
    filters: list[Filter] = []

    repeats = loop_count(length, track.duration) if spec.loop else 0
    if repeats:
        filters.append(Filter("aloop", loop=repeats, size=LOOP_BUFFER_SAMPLES))
    filters += [
        Filter("atrim", duration=length),
        Filter("asetpts", "PTS-STARTPTS"),
        Filter("volume", spec.volume),
    ]
    if spec.fade_in > 0:
        filters.append(Filter("afade", t="in", st=0.0, d=spec.fade_in))
    if spec.fade_out > 0:
        filters.append(Filter("afade", t="out", st=max(length - spec.fade_out, 0.0), d=spec.fade_out))
    if window.start > 0:
        delay_ms = int(round(window.start * 1000))
        filters.append(Filter("adelay", delays=delay_ms, all=1))

    graph = FilterGraph()
    graph.add(["1:a"], filters, ["bg"])
    graph.add(
        ["0:a", "bg"],
        [Filter("amix", inputs=2, duration="first", dropout_transition=2)],
        ["audio_out"],
    )
    return graph


def apply_overlay(
    input_path: Path,
    output_path: Path,
    spec: AudioOverlaySpec,
    track_path: Path,
    encode: EncodeConfig | None = None,
) -> Path:
    """Mix ``track_path`` into ``input_path`` over the overlay window."""
    source = ffutil.probe(input_path)
    if not source.has_audio:
        raise ffutil.NoAudioStreamError(f"No audio stream in {input_path.name} to mix with")
    window = overlay_window(spec, source.duration)
    track = ffutil.probe(track_path)
    if not track.has_audio:
        raise ffutil.NoAudioStreamError(f"Background track {track_path.name} has no audio")

    encode = encode or EncodeConfig()
    graph = build_overlay_graph(spec, window, track)
    cmd = Command(
        inputs=[input_path, track_path],
        output=output_path,
        graph=graph,
        maps=["0:v?", "audio_out"],
        output_args=["-c:v", "copy", *encode.audio_args(), "-avoid_negative_ts", "make_zero"],
    )
    ffutil.run_ffmpeg(cmd, stage="audio-overlay")
    return output_path
