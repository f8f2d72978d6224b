"""Shared data types used across Reelsmith."""

from dataclasses import dataclass


@dataclass
class TimeRange:
    """A start/end time pair in seconds."""

    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass
class Segment:
    """A labeled time segment, optionally carrying transcript text.

    Removal segments are labeled ``silence`` or ``filler``; transcript
    segments are labeled ``caption`` and carry their text.
    """

    start: float
    end: float
    label: str
    text: str | None = None

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class LevelSample:
    """One point of a loudness trace: RMS level in dB at ``time`` seconds."""

    time: float
    level_db: float


@dataclass(frozen=True)
class ProbeResult:
    """Metadata extracted from a media file via ffprobe."""

    duration: float
    width: int = 0
    height: int = 0
    fps: float = 0.0
    has_video: bool = True
    has_audio: bool = True
    audio_sample_rate: int = 0
    codec_video: str = ""
    codec_audio: str = ""
