"""JSON manifest schema: the contract between CLI/API and engine."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from reelsmith.errors import ValidationError

EASINGS = ("linear", "ease-in", "ease-out", "ease-in-out")
ITEM_FAILURE_POLICIES = ("stop", "continue")


@dataclass
class SilenceCutConfig:
    """Configuration for silence detection and removal."""

    enabled: bool = True
    min_duration: float = 0.25
    threshold_db: float = -35.0
    padding: float = 0.12


@dataclass
class FillerCutConfig:
    """Configuration for the energy-gate filler detector.

    The detection band is ``(base_threshold_db - sensitivity *
    sensitivity_step_db, upper_db)``.
    """

    enabled: bool = True
    sensitivity: float = 0.7
    min_duration: float = 0.1
    max_duration: float = 2.0
    base_threshold_db: float = -30.0
    sensitivity_step_db: float = 5.0
    upper_db: float = -10.0
    sample_interval: float = 0.1

    @property
    def threshold_db(self) -> float:
        return self.base_threshold_db - self.sensitivity * self.sensitivity_step_db


@dataclass
class ZoomSpec:
    """Time-varying magnification applied from the start of a clip."""

    enabled: bool = True
    start_zoom: float = 1.0
    end_zoom: float = 1.15
    duration: float = 1.0
    easing: str = "ease-in-out"

    def __post_init__(self) -> None:
        if self.start_zoom < 1 or self.end_zoom < 1:
            raise ValidationError("zoom factors must be >= 1")
        if self.duration <= 0:
            raise ValidationError("zoom duration must be positive")
        if self.easing not in EASINGS:
            raise ValidationError(f"unknown easing {self.easing!r}")


@dataclass
class CaptionConfig:
    """Configuration for transcription and caption burn-in."""

    enabled: bool = True
    model: str = "base"
    language: str | None = None
    font: str = "Arial"
    font_size: int = 22
    sidecar_format: str | None = None  # "srt" or "vtt" writes a file next to the output


@dataclass
class EncodeConfig:
    """x264/AAC settings shared by every re-encoding stage."""

    preset: str = "veryfast"
    crf: int = 18
    audio_bitrate: str = "128k"

    def video_args(self) -> list[str]:
        return [
            "-c:v", "libx264",
            "-preset", self.preset,
            "-crf", str(self.crf),
            "-pix_fmt", "yuv420p",
        ]

    def audio_args(self) -> list[str]:
        return ["-c:a", "aac", "-b:a", self.audio_bitrate]


@dataclass
class TransitionSpec:
    """A transition clip spliced in at ``time`` seconds of the current cut."""

    transition_id: str
    time: float
    duration: float = 1.0

    def __post_init__(self) -> None:
        if not self.transition_id:
            raise ValidationError("transition id is required")
        if self.time < 0:
            raise ValidationError("transition time must be >= 0")
        if self.duration <= 0:
            raise ValidationError("transition duration must be positive")


@dataclass
class AudioOverlaySpec:
    """A background track mixed under the original audio."""

    track_id: str
    start_time: float = 0.0
    end_time: float | None = None
    volume: float = 0.3
    fade_in: float = 0.0
    fade_out: float = 0.0
    loop: bool = True

    def __post_init__(self) -> None:
        if not self.track_id:
            raise ValidationError("track id is required")
        if self.start_time < 0:
            raise ValidationError("overlay start time must be >= 0")
        if self.end_time is not None and self.end_time <= self.start_time:
            raise ValidationError("overlay end time must be after start time")
        if not 0.0 <= self.volume <= 1.0:
            raise ValidationError("overlay volume must be within [0, 1]")
        if self.fade_in < 0 or self.fade_out < 0:
            raise ValidationError("fade durations must be >= 0")


@dataclass
class Manifest:
    """Top-level editing manifest."""

    input: Path
    output: Path
    version: str = "1"
    silence_cut: SilenceCutConfig = field(default_factory=SilenceCutConfig)
    filler_cut: FillerCutConfig = field(default_factory=FillerCutConfig)
    zoom: ZoomSpec = field(default_factory=ZoomSpec)
    captions: CaptionConfig = field(default_factory=CaptionConfig)
    encode: EncodeConfig = field(default_factory=EncodeConfig)
    transitions: list[TransitionSpec] = field(default_factory=list)
    audios: list[AudioOverlaySpec] = field(default_factory=list)
    on_item_failure: str = "stop"


def _pick(item: dict[str, Any], *names: str, default: Any = None) -> Any:
    for name in names:
        if name in item and item[name] is not None:
            return item[name]
    return default


def _as_bool(value: Any) -> bool:
    """JSON and form values: real booleans, 0/1, or "true"/"false" text."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "1", "yes", "on"):
            return True
        if text in ("false", "0", "no", "off"):
            return False
    raise ValueError(f"expected a boolean, got {value!r}")


def _as_list(data: Any, what: str) -> list[dict[str, Any]]:
    if isinstance(data, str):
        try:
            data = json.loads(data) if data.strip() else []
        except json.JSONDecodeError as e:
            raise ValidationError(f"{what} is not valid JSON: {e}") from e
    if data is None:
        return []
    if not isinstance(data, list) or not all(isinstance(i, dict) for i in data):
        raise ValidationError(f"{what} must be a JSON array of objects")
    return data


def parse_transitions(data: Any) -> list[TransitionSpec]:
    """Build TransitionSpecs from a JSON array (or its text)."""
    specs = []
    for item in _as_list(data, "transitions"):
        try:
            specs.append(
                TransitionSpec(
                    transition_id=str(_pick(item, "transitionId", "transition_id", "id", default="")),
                    time=float(_pick(item, "time", "transitionTime", default=0.0)),
                    duration=float(_pick(item, "duration", default=1.0)),
                )
            )
        except (TypeError, ValueError) as e:
            raise ValidationError(f"invalid transition {item!r}: {e}") from e
    return specs


def parse_audios(data: Any) -> list[AudioOverlaySpec]:
    """Build AudioOverlaySpecs from a JSON array (or its text)."""
    specs = []
    for item in _as_list(data, "audios"):
        end_time = _pick(item, "endTime", "end_time")
        try:
            specs.append(
                AudioOverlaySpec(
                    track_id=str(_pick(item, "trackId", "track_id", "id", default="")),
                    start_time=float(_pick(item, "startTime", "start_time", default=0.0)),
                    end_time=float(end_time) if end_time is not None else None,
                    volume=float(_pick(item, "volume", default=0.3)),
                    fade_in=float(_pick(item, "fadeIn", "fade_in", default=0.0)),
                    fade_out=float(_pick(item, "fadeOut", "fade_out", default=0.0)),
                    loop=_as_bool(_pick(item, "loop", default=True)),
                )
            )
        except (TypeError, ValueError) as e:
            raise ValidationError(f"invalid audio overlay {item!r}: {e}") from e
    return specs


def _section(cls, data: dict[str, Any], key: str):
    """Build one nested config dataclass from its manifest section."""
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ValidationError(f"'{key}' must be a JSON object")
    try:
        return cls(**section)
    except TypeError as e:
        raise ValidationError(f"invalid '{key}' section: {e}") from e


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ValidationError(f"{path.name} is not valid JSON: {e}") from e

    if not isinstance(data, dict) or "input" not in data or "output" not in data:
        raise ValidationError("Manifest must contain 'input' and 'output' fields")

    on_item_failure = data.get("on_item_failure", "stop")
    if on_item_failure not in ITEM_FAILURE_POLICIES:
        raise ValidationError(f"on_item_failure must be one of {ITEM_FAILURE_POLICIES}")

    return Manifest(
        version=data.get("version", "1"),
        input=Path(data["input"]),
        output=Path(data["output"]),
        silence_cut=_section(SilenceCutConfig, data, "silence_cut"),
        filler_cut=_section(FillerCutConfig, data, "filler_cut"),
        zoom=_section(ZoomSpec, data, "zoom"),
        captions=_section(CaptionConfig, data, "captions"),
        encode=_section(EncodeConfig, data, "encode"),
        transitions=parse_transitions(data.get("transitions")),
        audios=parse_audios(data.get("audios")),
        on_item_failure=on_item_failure,
    )
