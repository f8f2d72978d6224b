"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import math
import re
import shutil
import subprocess
from pathlib import Path

from reelsmith.errors import ExternalProcessFailure, ReelsmithError, ValidationError
from reelsmith.graph import Command
from reelsmith.models import LevelSample, ProbeResult, TimeRange

log = logging.getLogger(__name__)

# Amount of stderr kept on ExternalProcessFailure.
DIAGNOSTIC_TAIL = 2000


class FFmpegNotFoundError(ReelsmithError, RuntimeError):
    pass


class NoAudioStreamError(ValidationError):
    """Raised when the input file has no audio stream."""
    pass


def check_ffmpeg() -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in ("ffmpeg", "ffprobe"):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def _tail(text: str | bytes | None) -> str:
    if text is None:
        return ""
    if isinstance(text, bytes):
        text = text.decode(errors="replace")
    return text[-DIAGNOSTIC_TAIL:]


def run_ffmpeg(args: list[str] | Command, stage: str) -> subprocess.CompletedProcess:
    """Run an ffmpeg/ffprobe command, raising ExternalProcessFailure on non-zero exit."""
    if isinstance(args, Command):
        args = args.to_args()
    log.debug("%s: %s", stage, " ".join(args))
    try:
        result = subprocess.run(args, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise FFmpegNotFoundError(f"{args[0]} not found on PATH") from e
    if result.returncode != 0:
        raise ExternalProcessFailure(
            stage,
            f"{args[0]} exited with code {result.returncode}",
            diagnostic=_tail(result.stderr),
        )
    return result


def _parse_fps(rate: str | None) -> float:
    try:
        num, _, den = (rate or "").partition("/")
        value = float(num) / float(den or 1)
    except (ValueError, ZeroDivisionError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def probe(input_path: Path) -> ProbeResult:
    """Extract media metadata via ffprobe."""
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    result = run_ffmpeg(cmd, stage="probe")
    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ExternalProcessFailure("probe", f"unreadable ffprobe output for {input_path}") from e

    streams = data.get("streams", [])
    video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio_stream = next((s for s in streams if s.get("codec_type") == "audio"), None)

    duration = float(data.get("format", {}).get("duration") or 0.0)
    if video_stream is None:
        return ProbeResult(
            duration=duration,
            has_video=False,
            has_audio=audio_stream is not None,
            audio_sample_rate=int(audio_stream.get("sample_rate", 0)) if audio_stream else 0,
            codec_audio=audio_stream.get("codec_name", "") if audio_stream else "",
        )

    return ProbeResult(
        duration=duration,
        width=int(video_stream.get("width", 0)),
        height=int(video_stream.get("height", 0)),
        fps=_parse_fps(video_stream.get("r_frame_rate") or video_stream.get("avg_frame_rate")),
        has_video=True,
        has_audio=audio_stream is not None,
        audio_sample_rate=int(audio_stream.get("sample_rate", 0)) if audio_stream else 0,
        codec_video=video_stream.get("codec_name", ""),
        codec_audio=audio_stream.get("codec_name", "") if audio_stream else "",
    )


def parse_silence_ranges(stderr: str, duration: float | None = None) -> list[TimeRange]:
    """Parse silencedetect output from ffmpeg stderr into TimeRanges.

    If a silence_start has no matching silence_end (silence extends to EOF),
    ``duration`` is used as the end time. If ``duration`` is also None the
    unpaired start is dropped.
    """
    starts = [float(m) for m in re.findall(r"silence_start: (-?[\d.]+)", stderr)]
    ends = [float(m) for m in re.findall(r"silence_end: (-?[\d.]+)", stderr)]

    ranges: list[TimeRange] = []
    for i, start in enumerate(starts):
        start = max(start, 0.0)
        if i < len(ends):
            ranges.append(TimeRange(start=start, end=ends[i]))
        elif duration is not None and duration > start:
            # Unpaired silence_start: silence extends to EOF
            ranges.append(TimeRange(start=start, end=duration))
    return ranges


def detect_silence(
    input_path: Path,
    threshold_db: float,
    min_duration: float,
    duration: float | None = None,
) -> list[TimeRange]:
    """Run FFmpeg silencedetect and return silent time ranges.

    *duration* is used to cap trailing silence that extends to EOF (an unpaired
    ``silence_start`` with no matching ``silence_end``).  When not supplied, any
    unpaired trailing silence is dropped.
    """
    cmd = [
        "ffmpeg", "-hide_banner",
        "-i", str(input_path),
        "-vn",
        "-af", f"silencedetect=noise={threshold_db}dB:d={min_duration}",
        "-f", "null", "-",
    ]
    result = run_ffmpeg(cmd, stage="silence-detect")
    return parse_silence_ranges(result.stderr, duration=duration)


_METADATA_RE = re.compile(
    r"pts_time:(?P<time>-?[\d.]+)|lavfi\.astats\.Overall\.RMS_level=(?P<level>-?inf|-?[\d.]+)"
)


def parse_level_trace(stderr: str, interval: float) -> list[LevelSample]:
    """Parse ``ametadata=print`` output into a loudness trace.

    Each RMS value is paired with the most recent ``pts_time`` seen; when the
    frame header is missing, the sample index times ``interval`` is used.
    """
    samples: list[LevelSample] = []
    pending_time: float | None = None
    for m in _METADATA_RE.finditer(stderr):
        if m.group("time") is not None:
            pending_time = float(m.group("time"))
            continue
        t = pending_time if pending_time is not None else len(samples) * interval
        samples.append(LevelSample(time=t, level_db=float(m.group("level"))))
        pending_time = None
    return samples


def measure_levels(
    input_path: Path, interval: float = 0.1, sample_rate: int = 16000
) -> list[LevelSample]:
    """Measure the RMS level of the audio track every ``interval`` seconds."""
    window = max(1, int(round(sample_rate * interval)))
    af = ",".join([
        f"aresample={sample_rate}",
        "aformat=channel_layouts=mono",
        f"asetnsamples=n={window}:p=0",
        "astats=metadata=1:reset=1",
        "ametadata=print:key=lavfi.astats.Overall.RMS_level",
    ])
    cmd = [
        "ffmpeg", "-hide_banner",
        "-i", str(input_path),
        "-vn",
        "-af", af,
        "-f", "null", "-",
    ]
    result = run_ffmpeg(cmd, stage="level-trace")
    return parse_level_trace(result.stderr, interval)


def extract_audio(
    input_path: Path, output_path: Path, sample_rate: int = 16000
) -> Path:
    """Extract audio as mono WAV at the given sample rate (for Whisper)."""
    cmd = [
        "ffmpeg", "-y",
        "-i", str(input_path),
        "-vn",
        "-acodec", "pcm_s16le",
        "-ar", str(sample_rate),
        "-ac", "1",
        str(output_path),
    ]
    run_ffmpeg(cmd, stage="extract-audio")
    return output_path


def stream_copy(input_path: Path, output_path: Path, stage: str = "copy") -> Path:
    """Remux without re-encoding."""
    cmd = [
        "ffmpeg", "-y",
        "-i", str(input_path),
        "-map", "0",
        "-c", "copy",
        str(output_path),
    ]
    run_ffmpeg(cmd, stage=stage)
    return output_path
