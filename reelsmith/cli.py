"""Thin CLI entry point: builds a Manifest and calls the engine."""

import argparse
import sys
from pathlib import Path

from reelsmith.engine import process
from reelsmith.errors import HardStageFailure, ValidationError
from reelsmith.logging_utils import configure_logging
from reelsmith.manifest import (
    AudioOverlaySpec,
    CaptionConfig,
    FillerCutConfig,
    Manifest,
    SilenceCutConfig,
    TransitionSpec,
    ZoomSpec,
    load_manifest,
)


def _transition(value: str) -> TransitionSpec:
    """ID@SECONDS, e.g. ``whoosh@3.5``."""
    tid, sep, at = value.rpartition("@")
    if not sep:
        raise argparse.ArgumentTypeError("expected ID@SECONDS")
    try:
        return TransitionSpec(transition_id=tid, time=float(at))
    except (ValueError, ValidationError) as e:
        raise argparse.ArgumentTypeError(str(e))


def _audio(value: str) -> AudioOverlaySpec:
    """ID or ID@VOLUME, e.g. ``lofi@0.2``."""
    tid, sep, volume = value.partition("@")
    try:
        return AudioOverlaySpec(track_id=tid, volume=float(volume) if sep else 0.3)
    except (ValueError, ValidationError) as e:
        raise argparse.ArgumentTypeError(str(e))


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="reelsmith",
        description="Reelsmith: short-form post-production: trims, zoom, transitions, music and captions.",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: $LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command")

    proc = sub.add_parser("process", help="Process a video file")
    proc.add_argument("video", nargs="?", type=Path, help="Input video file")
    proc.add_argument("--manifest", "-m", type=Path, help="Path to a JSON manifest file")
    proc.add_argument("--output", "-o", type=Path, help="Output file path")
    proc.add_argument("--assets", type=Path, default=Path("assets"), help="Directory holding transitions/ and background-audio/")
    proc.add_argument("--no-silence-cut", action="store_true", help="Keep silent stretches")
    proc.add_argument("--no-filler-cut", action="store_true", help="Keep filler-like stretches")
    proc.add_argument("--no-zoom", action="store_true", help="Skip the opening zoom")
    proc.add_argument("--no-captions", action="store_true", help="Skip transcription and caption burn-in")
    proc.add_argument("--silence-threshold", type=float, default=-35.0, help="Silence threshold in dB")
    proc.add_argument("--silence-min-duration", type=float, default=0.25, help="Minimum silence duration (seconds)")
    proc.add_argument("--silence-padding", type=float, default=0.12, help="Extra seconds cut around each silence")
    proc.add_argument("--filler-sensitivity", type=float, default=0.7, help="Filler detector sensitivity")
    proc.add_argument("--zoom-end", type=float, default=1.15, help="Zoom factor reached at the end of the zoom")
    proc.add_argument("--zoom-duration", type=float, default=1.0, help="Zoom duration (seconds)")
    proc.add_argument("--zoom-easing", choices=["linear", "ease-in", "ease-out", "ease-in-out"], default="ease-in-out")
    proc.add_argument("--transition", type=_transition, action="append", default=[], metavar="ID@SECONDS")
    proc.add_argument("--audio", type=_audio, action="append", default=[], metavar="ID[@VOLUME]")
    proc.add_argument("--caption-model", type=str, default="base", help="Whisper model size")
    proc.add_argument("--caption-sidecar", choices=["srt", "vtt"], default=None, help="Also write a caption file")

    serve = sub.add_parser("serve", help="Launch the HTTP API")
    serve.add_argument("--port", type=int, default=5000, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")
    serve.add_argument("--assets", type=Path, default=None, help="Asset directory")

    args = parser.parse_args()
    configure_logging(args.log_level)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        from reelsmith.web import create_app
        app = create_app(assets_dir=args.assets)
        print(f"Reelsmith API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False, threaded=True)
        return

    if args.manifest:
        try:
            m = load_manifest(args.manifest)
        except (OSError, ValidationError) as e:
            parser.error(f"cannot load manifest {args.manifest}: {e}")
    elif args.video:
        output = args.output or args.video.with_stem(args.video.stem + "_edited")
        try:
            zoom = ZoomSpec(
                enabled=not args.no_zoom,
                end_zoom=args.zoom_end,
                duration=args.zoom_duration,
                easing=args.zoom_easing,
            )
        except ValidationError as e:
            parser.error(str(e))
        m = Manifest(
            input=args.video,
            output=output,
            silence_cut=SilenceCutConfig(
                enabled=not args.no_silence_cut,
                threshold_db=args.silence_threshold,
                min_duration=args.silence_min_duration,
                padding=args.silence_padding,
            ),
            filler_cut=FillerCutConfig(
                enabled=not args.no_filler_cut,
                sensitivity=args.filler_sensitivity,
            ),
            zoom=zoom,
            captions=CaptionConfig(
                enabled=not args.no_captions,
                model=args.caption_model,
                sidecar_format=args.caption_sidecar,
            ),
            transitions=args.transition,
            audios=args.audio,
        )
    else:
        print("Error: provide either a VIDEO argument or --manifest.", file=sys.stderr)
        sys.exit(1)

    def on_progress(stage: str, percent: float) -> None:
        print(f"  [{percent:3.0f}%] {stage}")

    try:
        result = process(m, on_progress=on_progress, assets_dir=args.assets)
    except HardStageFailure as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print()
    print(f"Done! Output: {result.output_path}")
    print(f"  Duration: {result.duration_original:.1f}s -> {result.duration_final:.1f}s")
    if result.segments_removed:
        print(f"  Silent segments removed: {result.segments_removed}")
    if result.fillers_removed:
        print(f"  Filler segments removed: {result.fillers_removed}")
    if result.transitions_applied:
        print(f"  Transitions: {result.transitions_applied}")
    if result.audios_applied:
        print(f"  Background tracks: {result.audios_applied}")
    for warning in result.soft_failures:
        print(f"  Warning: {warning}")
    if result.caption_path:
        print(f"  Captions: {result.caption_path}")


if __name__ == "__main__":
    main()
