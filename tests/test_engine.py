"""Tests for the engine module."""

from contextlib import ExitStack
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from reelsmith.engine import EngineResult, apply_overlays, apply_transitions, process
from reelsmith.errors import ExternalProcessFailure, HardStageFailure
from reelsmith.ffutil import FFmpegNotFoundError
from reelsmith.manifest import (
    AudioOverlaySpec,
    CaptionConfig,
    FillerCutConfig,
    Manifest,
    SilenceCutConfig,
    TransitionSpec,
    ZoomSpec,
)
from reelsmith.models import Segment
from reelsmith.progress import ProgressTracker

from conftest import make_probe

SPEECH = [
    Segment(start=0.0, end=1.5, label="caption", text="Hello world"),
    Segment(start=1.5, end=3.0, label="caption", text="Second line"),
]


def fake_transcriber(audio_path: Path, config: CaptionConfig) -> list[Segment]:
    return list(SPEECH)


def silent_transcriber(audio_path: Path, config: CaptionConfig) -> list[Segment]:
    return []


def _touch(path: Path) -> Path:
    path.write_bytes(b"media")
    return path


@pytest.fixture
def env(tmp_path: Path):
    source = tmp_path / "clip.mp4"
    source.write_bytes(b"source")
    assets = tmp_path / "assets"
    (assets / "transitions").mkdir(parents=True)
    for name in ("flash", "whoosh"):
        (assets / "transitions" / f"{name}.mp4").write_bytes(b"")
    (assets / "background-audio").mkdir()
    for name in ("lofi", "piano"):
        (assets / "background-audio" / f"{name}.mp3").write_bytes(b"")

    with ExitStack() as stack:
        def p(target, **kwargs):
            return stack.enter_context(patch(target, **kwargs))

        yield SimpleNamespace(
            source=source,
            assets=assets,
            work=tmp_path / "work",
            output=tmp_path / "out" / "clip_edited.mp4",
            check=p("reelsmith.engine.ffutil.check_ffmpeg"),
            probe=p("reelsmith.engine.ffutil.probe", return_value=make_probe(10.0)),
            extract=p("reelsmith.engine.ffutil.extract_audio", side_effect=lambda src, out: _touch(out)),
            silence=p("reelsmith.engine.analyze_silence", return_value=[]),
            fillers=p("reelsmith.engine.analyze_fillers", return_value=[]),
            cuts=p("reelsmith.engine.apply_cuts", side_effect=lambda src, keep, out, probe, enc: _touch(out)),
            zoom=p("reelsmith.engine.apply_zoom", side_effect=lambda src, out, spec, probe, enc: _touch(out)),
            transition=p(
                "reelsmith.engine.apply_transition", side_effect=lambda src, out, spec, clip, enc: _touch(out)
            ),
            overlay=p(
                "reelsmith.engine.apply_overlay", side_effect=lambda src, out, spec, track, enc: _touch(out)
            ),
            burn=p("reelsmith.engine.burn_captions", side_effect=lambda src, subs, out, enc: _touch(out)),
        )


def _fail_on(transition_id: str):
    def splice(src, out, spec, clip, enc):
        if spec.transition_id == transition_id:
            raise ExternalProcessFailure("transition", "ffmpeg exited with code 1")
        return _touch(out)
    return splice


def _manifest(env, **kwargs) -> Manifest:
    return Manifest(input=env.source, output=env.output, **kwargs)


def _process(env, manifest: Manifest, **kwargs) -> EngineResult:
    kwargs.setdefault("transcriber", fake_transcriber)
    return process(manifest, assets_dir=env.assets, work_dir=env.work, **kwargs)


class TestEngineResult:
    def test_defaults(self):
        r = EngineResult(output_path=Path("out.mp4"))
        assert r.caption_path is None
        assert r.segments_removed == 0
        assert r.duration_original == 0.0
        assert r.duration_final == 0.0
        assert r.transcript_segments == []
        assert r.soft_failures == []

    def test_transcript_text(self):
        r = EngineResult(output_path=Path("out.mp4"), transcript_segments=list(SPEECH))
        assert r.transcript_text == "Hello world Second line"


class TestFullPipeline:
    def test_output_written_and_intermediates_removed(self, env):
        result = _process(env, _manifest(env))

        assert result.output_path == env.output
        assert env.output.read_bytes() == b"media"
        assert env.source.exists()
        assert list(env.work.iterdir()) == []
        assert result.transcript_segments == SPEECH
        assert result.duration_original == 10.0
        assert result.duration_final == 10.0
        env.zoom.assert_called_once()
        env.burn.assert_called_once()

    def test_progress_is_monotonic_with_milestones(self, env):
        events: list[tuple[str, float]] = []
        _process(env, _manifest(env), on_progress=lambda msg, pct: events.append((msg, pct)))

        percents = [pct for _, pct in events]
        assert percents == sorted(percents)
        for milestone in (5, 20, 30, 40, 55, 65, 88, 97, 98, 100):
            assert milestone in percents
        assert events[-1] == ("Done", 100)

    def test_silence_removal_cuts_padded_ranges(self, env):
        env.silence.return_value = [Segment(start=4.0, end=6.0, label="silence")]
        result = _process(env, _manifest(env))

        keep = env.cuts.call_args[0][1]
        assert len(keep) == 2
        assert keep[0].end == pytest.approx(3.88)
        assert keep[1].start == pytest.approx(6.12)
        assert result.segments_removed == 1

    def test_filler_removal_uses_no_padding(self, env):
        env.fillers.return_value = [Segment(start=2.0, end=2.5, label="filler")]
        result = _process(env, _manifest(env, silence_cut=SilenceCutConfig(enabled=False)))

        keep = env.cuts.call_args[0][1]
        assert (keep[0].end, keep[1].start) == (2.0, 2.5)
        assert result.fillers_removed == 1

    def test_no_edits_copies_input(self, env):
        m = _manifest(
            env,
            silence_cut=SilenceCutConfig(enabled=False),
            filler_cut=FillerCutConfig(enabled=False),
            zoom=ZoomSpec(enabled=False),
            captions=CaptionConfig(enabled=False),
        )
        _process(env, m)
        assert env.output.read_bytes() == b"source"
        env.extract.assert_not_called()
        env.burn.assert_not_called()

    def test_sidecar_captions(self, env):
        result = _process(env, _manifest(env, captions=CaptionConfig(sidecar_format="srt")))
        assert result.caption_path == env.output.with_suffix(".srt")
        assert "Hello world" in result.caption_path.read_text(encoding="utf-8")


class TestHardFailures:
    def test_everything_silent_aborts_before_encoding(self, env):
        env.silence.return_value = [Segment(start=0.0, end=10.0, label="silence")]
        tracker = ProgressTracker()

        with pytest.raises(HardStageFailure) as exc_info:
            _process(env, _manifest(env), request_id="r1", tracker=tracker)

        assert exc_info.value.stage == "silence"
        env.cuts.assert_not_called()
        assert not env.output.exists()
        state = tracker.get("r1")
        assert state.done is True
        assert state.error

    def test_empty_transcription_is_fatal(self, env):
        with pytest.raises(HardStageFailure) as exc_info:
            _process(env, _manifest(env), transcriber=silent_transcriber)

        assert exc_info.value.stage == "transcribe"
        assert isinstance(exc_info.value.cause, ExternalProcessFailure)
        assert list(env.work.iterdir()) == []
        env.burn.assert_not_called()

    def test_missing_ffmpeg(self, env):
        env.check.side_effect = FFmpegNotFoundError("ffmpeg not found on PATH")
        with pytest.raises(HardStageFailure, match="ffmpeg not found"):
            _process(env, _manifest(env))

    def test_failed_burn_leaves_no_intermediates(self, env):
        env.burn.side_effect = ExternalProcessFailure("burn-subtitles", "ffmpeg exited with code 1")
        with pytest.raises(HardStageFailure):
            _process(env, _manifest(env))
        assert list(env.work.iterdir()) == []
        assert not env.output.exists()


class TestSoftFailures:
    def test_failed_zoom_carries_previous_artifact(self, env):
        env.zoom.side_effect = ExternalProcessFailure("zoom", "ffmpeg exited with code 1")
        result = _process(env, _manifest(env))

        assert len(result.soft_failures) == 1
        assert "zoom" in result.soft_failures[0]
        assert env.burn.call_args[0][0] == env.source
        assert env.output.exists()

    def test_failed_filler_detection(self, env):
        env.fillers.side_effect = ExternalProcessFailure("level-trace", "ffmpeg exited with code 1")
        result = _process(env, _manifest(env))
        assert len(result.soft_failures) == 1
        env.cuts.assert_not_called()


class TestListStages:
    def test_transitions_applied_in_time_order(self, env):
        m = _manifest(env, transitions=[TransitionSpec("whoosh", 5.0), TransitionSpec("flash", 1.0)])
        result = _process(env, m)

        applied = [c[0][2].transition_id for c in env.transition.call_args_list]
        assert applied == ["flash", "whoosh"]
        assert result.transitions_applied == 2
        # each splice consumes the previous splice's output
        first_out = env.transition.call_args_list[0][0][1]
        assert env.transition.call_args_list[1][0][0] == first_out

    def test_failed_item_stops_the_list(self, env):
        env.transition.side_effect = _fail_on("whoosh")
        m = _manifest(env, transitions=[TransitionSpec("whoosh", 1.0), TransitionSpec("flash", 2.0)])
        result = _process(env, m)

        assert env.transition.call_count == 1
        assert result.transitions_applied == 0
        assert len(result.soft_failures) == 1
        assert "transitions[0]" in result.soft_failures[0]
        assert env.output.exists()

    def test_continue_policy_applies_remaining_items(self, env):
        env.transition.side_effect = _fail_on("whoosh")
        m = _manifest(
            env,
            transitions=[TransitionSpec("whoosh", 1.0), TransitionSpec("flash", 2.0)],
            on_item_failure="continue",
        )
        result = _process(env, m)
        assert result.transitions_applied == 1
        # the second item runs against the last good artifact
        first, second = env.transition.call_args_list
        assert second[0][0] == first[0][0]

    def test_unknown_asset_fails_before_encoding(self, env):
        m = _manifest(env, transitions=[TransitionSpec("ghost", 1.0)])
        with pytest.raises(HardStageFailure, match="Transition 'ghost' not found") as exc_info:
            _process(env, m)
        assert exc_info.value.stage == "validate"
        env.silence.assert_not_called()
        env.transition.assert_not_called()

    def test_unknown_track_fails_before_encoding(self, env):
        m = _manifest(env, audios=[AudioOverlaySpec("missing")])
        with pytest.raises(HardStageFailure, match="Background audio track 'missing' not found"):
            _process(env, m)
        env.overlay.assert_not_called()

    def test_overlays_applied_in_given_order(self, env):
        m = _manifest(env, audios=[AudioOverlaySpec("piano"), AudioOverlaySpec("lofi", volume=0.1)])
        result = _process(env, m)
        assert [c[0][2].track_id for c in env.overlay.call_args_list] == ["piano", "lofi"]
        assert result.audios_applied == 2


class TestTrackerIntegration:
    def test_success_marks_complete(self, env):
        tracker = ProgressTracker()
        _process(env, _manifest(env), request_id="ok", tracker=tracker)
        state = tracker.get("ok")
        assert (state.percent, state.done, state.error) == (100.0, True, None)


class TestSingleStageEntryPoints:
    def test_apply_transitions_runs_only_transitions(self, env):
        result = apply_transitions(
            env.source, env.output, [TransitionSpec("flash", 2.0)],
            assets_dir=env.assets, work_dir=env.work,
        )
        assert result.transitions_applied == 1
        env.silence.assert_not_called()
        env.zoom.assert_not_called()
        env.extract.assert_not_called()
        assert env.output.exists()

    def test_apply_overlays_runs_only_overlays(self, env):
        result = apply_overlays(
            env.source, env.output, [AudioOverlaySpec("lofi")],
            assets_dir=env.assets, work_dir=env.work,
        )
        assert result.audios_applied == 1
        env.transition.assert_not_called()
        env.burn.assert_not_called()
