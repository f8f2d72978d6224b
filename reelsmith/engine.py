"""Orchestrator: runs the editing pipeline defined by a Manifest.

Stages run strictly in order, each consuming the artifact produced by the
one before. Every stage is either *hard* (a failure aborts the run) or
*soft* (a failure is logged and the previous artifact is carried forward).
Transitions and overlays are lists whose items are soft one by one.
"""

import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from reelsmith import ffutil
from reelsmith.analyzers.filler import analyze_fillers
from reelsmith.analyzers.silence import analyze_silence
from reelsmith.analyzers.transcribe import transcribe_audio
from reelsmith.assets import AssetCatalog, track_catalog, transition_catalog
from reelsmith.editors.captions import Cue, build_cues, burn_captions, write_captions
from reelsmith.editors.cut import apply_cuts, covers_whole
from reelsmith.editors.keep import build_keep_segments
from reelsmith.editors.overlay import apply_overlay
from reelsmith.editors.transitions import apply_transition, order_transitions
from reelsmith.editors.zoom import apply_zoom
from reelsmith.errors import (
    ExternalProcessFailure,
    HardStageFailure,
    SoftStageFailure,
    ValidationError,
)
from reelsmith.manifest import AudioOverlaySpec, CaptionConfig, EncodeConfig, Manifest, TransitionSpec
from reelsmith.models import ProbeResult, Segment
from reelsmith.progress import ProgressTracker
from reelsmith.workspace import Workspace

log = logging.getLogger(__name__)

HARD = "hard"
SOFT = "soft"
ITEMS = "items"

Transcriber = Callable[[Path, CaptionConfig], list[Segment]]


@dataclass(frozen=True)
class Ok:
    artifact: Path


@dataclass(frozen=True)
class SoftFail:
    artifact: Path
    failure: SoftStageFailure


@dataclass(frozen=True)
class HardFail:
    failure: HardStageFailure


StageResult = Ok | SoftFail | HardFail


@dataclass
class Stage:
    name: str
    message: str
    policy: str
    percent: float
    run: Callable[[Path], Path]
    enabled: bool = True


@dataclass
class EngineResult:
    output_path: Path
    caption_path: Path | None = None
    segments_removed: int = 0
    fillers_removed: int = 0
    duration_original: float = 0.0
    duration_final: float = 0.0
    transcript_segments: list[Segment] = field(default_factory=list)
    transitions_applied: int = 0
    audios_applied: int = 0
    soft_failures: list[str] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def transcript_text(self) -> str:
        return " ".join(s.text or "" for s in self.transcript_segments).strip()


class Pipeline:
    """One run of the editing pipeline over one manifest."""

    def __init__(
        self,
        manifest: Manifest,
        workspace: Workspace,
        transcriber: Transcriber = transcribe_audio,
        transitions: AssetCatalog | None = None,
        tracks: AssetCatalog | None = None,
        on_progress: Callable[[str, float], None] | None = None,
    ):
        self.manifest = manifest
        self.workspace = workspace
        self.transcriber = transcriber
        self.transitions = transitions
        self.tracks = tracks
        self.on_progress = on_progress
        self.result = EngineResult(output_path=manifest.output)
        self._audio_path: Path | None = None
        self._subtitle_path: Path | None = None
        self._cues: list[Cue] = []
        self._probes: dict[Path, ProbeResult] = {}
        self._assets: dict[tuple[str, str], Path] = {}
        self._last_percent = 0.0

    @property
    def encode(self) -> EncodeConfig:
        return self.manifest.encode

    def _progress(self, message: str, percent: float) -> None:
        self._last_percent = percent
        if self.on_progress:
            self.on_progress(message, percent)

    def probe(self, path: Path) -> ProbeResult:
        if path not in self._probes:
            self._probes[path] = ffutil.probe(path)
        return self._probes[path]

    # --- stage policy ---

    def run_stage(self, name: str, policy: str, fn: Callable[[Path], Path], artifact: Path) -> StageResult:
        try:
            return Ok(fn(artifact))
        except Exception as e:
            if policy == HARD:
                log.error("Stage %s failed: %s", name, e)
                return HardFail(HardStageFailure(name, e))
            failure = SoftStageFailure(name, e)
            log.warning("Stage %s failed, continuing without it: %s", name, e)
            self.result.soft_failures.append(str(failure))
            return SoftFail(artifact, failure)

    def run_items(self, name: str, items: list, fn: Callable[[Path, object], Path], artifact: Path) -> tuple[Path, int]:
        """Apply ``fn`` for each item; a failing item is skipped and, under the
        "stop" policy, ends the list."""
        applied = 0
        for i, item in enumerate(items):
            result = self.run_stage(f"{name}[{i}]", SOFT, lambda a: fn(a, item), artifact)
            if isinstance(result, SoftFail):
                if self.manifest.on_item_failure == "stop":
                    skipped = len(items) - i - 1
                    if skipped:
                        log.warning("Skipping %d remaining %s after a failure", skipped, name)
                    break
                continue
            artifact = result.artifact
            applied += 1
        return artifact, applied

    # --- stages ---

    def _silence(self, artifact: Path) -> Path:
        cfg = self.manifest.silence_cut
        probe = self.probe(artifact)
        if not probe.has_audio:
            raise ffutil.NoAudioStreamError(f"No audio stream found in {artifact.name}")
        removals = analyze_silence(artifact, cfg, duration=probe.duration)
        self.result.segments_removed = len(removals)
        if not removals:
            return artifact
        keep = build_keep_segments(removals, probe.duration, cfg.padding, cfg.padding)
        if not keep:
            raise ValidationError("No speech segments survive silence removal")
        if covers_whole(keep, probe.duration):
            return artifact
        return apply_cuts(artifact, keep, self.workspace.path_for("trimmed"), probe, self.encode)

    def _fillers(self, artifact: Path) -> Path:
        probe = self.probe(artifact)
        removals = analyze_fillers(artifact, self.manifest.filler_cut)
        if not removals:
            return artifact
        keep = build_keep_segments(removals, probe.duration)
        if not keep:
            raise ValidationError("No speech segments survive filler removal")
        if covers_whole(keep, probe.duration):
            return artifact
        output = apply_cuts(artifact, keep, self.workspace.path_for("filler-trimmed"), probe, self.encode)
        self.result.fillers_removed = len(removals)
        return output

    def _extract_audio(self, artifact: Path) -> Path:
        self._audio_path = ffutil.extract_audio(artifact, self.workspace.path_for("audio", "wav"))
        return artifact

    def _transcribe(self, artifact: Path) -> Path:
        segments = self.transcriber(self._audio_path, self.manifest.captions)
        if not segments:
            raise ExternalProcessFailure("transcribe", "transcription returned no speech")
        self.result.transcript_segments = segments
        self.workspace.discard(self._audio_path)
        return artifact

    def _zoom(self, artifact: Path) -> Path:
        return apply_zoom(
            artifact, self.workspace.path_for("zoomed"), self.manifest.zoom, self.probe(artifact), self.encode
        )

    def _asset(self, catalog: AssetCatalog | None, kind: str, asset_id: str) -> Path:
        if catalog is None:
            raise ValidationError(f"no {kind} catalog configured")
        key = (kind, asset_id)
        if key not in self._assets:
            _, self._assets[key] = catalog.resolve(asset_id)
        return self._assets[key]

    def resolve_assets(self, only: set[str] | None = None) -> None:
        """Look up every referenced transition and track up front, so a bad
        id fails the run before anything is encoded."""
        if only is None or "transitions" in only:
            for spec in self.manifest.transitions:
                self._asset(self.transitions, "transition", spec.transition_id)
        if only is None or "audios" in only:
            for spec in self.manifest.audios:
                self._asset(self.tracks, "background track", spec.track_id)

    def _one_transition(self, artifact: Path, spec: TransitionSpec) -> Path:
        clip_path = self._asset(self.transitions, "transition", spec.transition_id)
        output = self.workspace.path_for(f"transition-{spec.transition_id}")
        return apply_transition(artifact, output, spec, clip_path, self.encode)

    def _transitions(self, artifact: Path) -> Path:
        ordered = order_transitions(self.manifest.transitions)
        artifact, self.result.transitions_applied = self.run_items(
            "transitions", ordered, self._one_transition, artifact
        )
        return artifact

    def _one_overlay(self, artifact: Path, spec: AudioOverlaySpec) -> Path:
        track_path = self._asset(self.tracks, "background track", spec.track_id)
        output = self.workspace.path_for(f"audio-{spec.track_id}")
        return apply_overlay(artifact, output, spec, track_path, self.encode)

    def _overlays(self, artifact: Path) -> Path:
        artifact, self.result.audios_applied = self.run_items(
            "audios", self.manifest.audios, self._one_overlay, artifact
        )
        return artifact

    def _subtitles(self, artifact: Path) -> Path:
        self._cues = build_cues(self.result.transcript_segments)
        self._subtitle_path = write_captions(
            self._cues, self.workspace.path_for("captions", "ass"), "ass", self.manifest.captions
        )
        return artifact

    def _burn(self, artifact: Path) -> Path:
        return burn_captions(artifact, self._subtitle_path, self.workspace.path_for("subtitled"), self.encode)

    def stages(self) -> list[Stage]:
        m = self.manifest
        captions = m.captions.enabled
        return [
            Stage("silence", "Trimming silence", HARD, 20, self._silence, m.silence_cut.enabled),
            Stage("filler", "Removing filler words", SOFT, 30, self._fillers, m.filler_cut.enabled),
            Stage("extract-audio", "Extracting audio", HARD, 40, self._extract_audio, captions),
            Stage("transcribe", "Transcribing audio", HARD, 55, self._transcribe, captions),
            Stage("zoom", "Applying zoom effect", SOFT, 65, self._zoom, m.zoom.enabled),
            Stage("transitions", "Adding transitions", ITEMS, 75, self._transitions, bool(m.transitions)),
            Stage("audios", "Adding background audio", ITEMS, 85, self._overlays, bool(m.audios)),
            Stage("subtitles", "Generating subtitles", HARD, 88, self._subtitles, captions),
            Stage("burn", "Burning subtitles", HARD, 97, self._burn, captions),
        ]

    def run(self, only: set[str] | None = None) -> EngineResult:
        started = time.monotonic()
        try:
            self.resolve_assets(only)
        except ValidationError as e:
            log.error("Asset lookup failed: %s", e)
            raise HardStageFailure("validate", e) from e

        source = self.manifest.input
        self.result.duration_original = self.probe(source).duration
        self._progress("Starting", 5)

        artifact = source
        for stage in self.stages():
            if only is not None and stage.name not in only:
                continue
            if stage.enabled:
                self._progress(stage.message, self._last_percent)
                # list stages handle their own item failures
                policy = HARD if stage.policy == ITEMS else stage.policy
                result = self.run_stage(stage.name, policy, stage.run, artifact)
                if isinstance(result, HardFail):
                    raise result.failure
                artifact = result.artifact
            self._progress(stage.message, stage.percent)

        self._progress("Finalizing output", 98)
        self._finalize(artifact)
        self.result.duration_final = ffutil.probe(self.manifest.output).duration
        self.result.elapsed = time.monotonic() - started
        return self.result

    def _finalize(self, artifact: Path) -> None:
        output = self.manifest.output
        output.parent.mkdir(parents=True, exist_ok=True)
        if artifact == self.manifest.input:
            # No edits changed the file; copy input to output
            shutil.copy2(artifact, output)
        else:
            artifact.replace(output)
        self.workspace.keep(output)

        fmt = self.manifest.captions.sidecar_format
        if fmt and self._cues:
            self.result.caption_path = write_captions(self._cues, output.with_suffix(f".{fmt}"), fmt)


def _run(
    manifest: Manifest,
    only: set[str] | None,
    on_progress: Callable[[str, float], None] | None,
    request_id: str | None,
    tracker: ProgressTracker | None,
    transcriber: Transcriber,
    assets_dir: Path | None,
    work_dir: Path | None,
) -> EngineResult:
    def _progress(stage: str, percent: float) -> None:
        if tracker is not None and request_id is not None:
            tracker.update(request_id, percent=percent, message=stage)
        if on_progress:
            on_progress(stage, percent)

    assets_dir = Path(assets_dir) if assets_dir is not None else Path("assets")
    work_dir = Path(work_dir) if work_dir is not None else manifest.output.parent
    try:
        ffutil.check_ffmpeg()
        with Workspace(work_dir, manifest.input.stem) as workspace:
            pipeline = Pipeline(
                manifest,
                workspace,
                transcriber=transcriber,
                transitions=transition_catalog(assets_dir),
                tracks=track_catalog(assets_dir),
                on_progress=_progress,
            )
            result = pipeline.run(only)
    except HardStageFailure as e:
        if tracker is not None and request_id is not None:
            tracker.fail(request_id, str(e))
        raise
    except Exception as e:
        if tracker is not None and request_id is not None:
            tracker.fail(request_id, str(e))
        raise HardStageFailure("pipeline", e) from e

    if tracker is not None and request_id is not None:
        tracker.complete(request_id)
    if on_progress:
        on_progress("Done", 100)
    return result


def process(
    manifest: Manifest,
    on_progress: Callable[[str, float], None] | None = None,
    *,
    request_id: str | None = None,
    tracker: ProgressTracker | None = None,
    transcriber: Transcriber = transcribe_audio,
    assets_dir: Path | None = None,
    work_dir: Path | None = None,
) -> EngineResult:
    """Execute the full editing pipeline.

    Args:
        manifest: Validated editing manifest.
        on_progress: Optional callback(stage_message, percent).
        request_id: Key under which progress is published to ``tracker``.
        transcriber: Speech-to-text collaborator; Whisper by default.
        assets_dir: Root holding ``transitions/`` and ``background-audio/``.
        work_dir: Where intermediates are written; defaults to the output's folder.

    Raises:
        HardStageFailure: a stage that must succeed failed. Intermediates
            are removed and the tracker entry is marked failed.
    """
    return _run(manifest, None, on_progress, request_id, tracker, transcriber, assets_dir, work_dir)


def apply_transitions(
    input_path: Path,
    output_path: Path,
    transitions: list[TransitionSpec],
    assets_dir: Path | None = None,
    **kwargs,
) -> EngineResult:
    """Run only the transition stage over ``input_path``."""
    manifest = Manifest(input=input_path, output=output_path, transitions=transitions)
    return _run(
        manifest, {"transitions"}, kwargs.get("on_progress"), kwargs.get("request_id"),
        kwargs.get("tracker"), transcribe_audio, assets_dir, kwargs.get("work_dir"),
    )


def apply_overlays(
    input_path: Path,
    output_path: Path,
    audios: list[AudioOverlaySpec],
    assets_dir: Path | None = None,
    **kwargs,
) -> EngineResult:
    """Run only the background-audio stage over ``input_path``."""
    manifest = Manifest(input=input_path, output=output_path, audios=audios)
    return _run(
        manifest, {"audios"}, kwargs.get("on_progress"), kwargs.get("request_id"),
        kwargs.get("tracker"), transcribe_audio, assets_dir, kwargs.get("work_dir"),
    )
