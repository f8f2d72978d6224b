"""Transition editor: splices a transition clip into the current cut."""

from pathlib import Path

from reelsmith import ffutil
from reelsmith.errors import ValidationError
from reelsmith.graph import Command, Filter, FilterGraph
from reelsmith.manifest import EncodeConfig, TransitionSpec
from reelsmith.models import ProbeResult

SILENT_SAMPLE_RATE = 44100

# Splices closer to the start than this get no head piece.
MIN_HEAD = 1e-3


def order_transitions(specs: list[TransitionSpec]) -> list[TransitionSpec]:
    """Ascending by time; ties keep their submitted order."""
    return sorted(specs, key=lambda s: s.time)


def _fit(width: int, height: int) -> list[Filter]:
    return [
        Filter("scale", width, height, force_original_aspect_ratio="decrease"),
        Filter("pad", width, height, "(ow-iw)/2", "(oh-ih)/2"),
        Filter("setsar", 1),
    ]


def _audio_format() -> Filter:
    # concat needs one sample format/layout across all pieces
    return Filter("aformat", sample_rates=SILENT_SAMPLE_RATE, channel_layouts="stereo")


def build_transition_graph(
    spec: TransitionSpec, source: ProbeResult, clip: ProbeResult
) -> FilterGraph:
    """head → transition → tail, all scaled and padded to the larger frame.

    Input 0 is the current cut, input 1 the transition clip. Without audio in
    the clip, a silent source fills its slot; without audio in the cut, only
    video is spliced.
    """
    if not source.has_video or not clip.has_video:
        raise ValidationError("transitions need a video stream in both the cut and the clip")

    width = max(source.width, clip.width)
    height = max(source.height, clip.height)
    clip_len = min(spec.duration, clip.duration) if clip.duration > 0 else spec.duration
    at = spec.time
    with_head = at > MIN_HEAD
    audio = source.has_audio

    graph = FilterGraph()
    pieces: list[tuple[str, str | None]] = []

    if with_head:
        graph.add(["0:v"], [Filter("split", 2)], ["vsrc_head", "vsrc_tail"])
        graph.add(
            ["vsrc_head"],
            [Filter("trim", duration=at), Filter("setpts", "PTS-STARTPTS"), *_fit(width, height)],
            ["vhead"],
        )
        if audio:
            graph.add(["0:a"], [Filter("asplit", 2)], ["asrc_head", "asrc_tail"])
            graph.add(
                ["asrc_head"],
                [Filter("atrim", duration=at), Filter("asetpts", "PTS-STARTPTS"), _audio_format()],
                ["ahead"],
            )
        pieces.append(("vhead", "ahead" if audio else None))
        tail_v, tail_a = "vsrc_tail", "asrc_tail"
    else:
        tail_v, tail_a = "0:v", "0:a"

    graph.add(
        ["1:v"],
        [Filter("trim", duration=clip_len), Filter("setpts", "PTS-STARTPTS"), *_fit(width, height)],
        ["vclip"],
    )
    if audio and clip.has_audio:
        graph.add(
            ["1:a"],
            [Filter("atrim", duration=clip_len), Filter("asetpts", "PTS-STARTPTS"), _audio_format()],
            ["aclip"],
        )
    elif audio:
        graph.add(
            [],
            [
                Filter("anullsrc", r=SILENT_SAMPLE_RATE, cl="stereo"),
                Filter("atrim", duration=clip_len),
                _audio_format(),
            ],
            ["aclip"],
        )
    pieces.append(("vclip", "aclip" if audio else None))

    graph.add(
        [tail_v],
        [Filter("trim", start=at), Filter("setpts", "PTS-STARTPTS"), *_fit(width, height)],
        ["vtail"],
    )
    if audio:
        graph.add(
            [tail_a],
            [Filter("atrim", start=at), Filter("asetpts", "PTS-STARTPTS"), _audio_format()],
            ["atail"],
        )
    pieces.append(("vtail", "atail" if audio else None))

    concat_inputs = [label for piece in pieces for label in piece if label]
    outputs = ["video_out", "audio_out"] if audio else ["video_out"]
    graph.add(concat_inputs, [Filter("concat", n=len(pieces), v=1, a=int(audio))], outputs)
    return graph


def apply_transition(
    input_path: Path,
    output_path: Path,
    spec: TransitionSpec,
    clip_path: Path,
    encode: EncodeConfig | None = None,
) -> Path:
    """Splice ``clip_path`` into ``input_path`` at ``spec.time``."""
    source = ffutil.probe(input_path)
    if spec.time >= source.duration:
        raise ValidationError(
            f"transition time {spec.time}s must be less than the video duration {source.duration:.2f}s"
        )
    clip = ffutil.probe(clip_path)

    encode = encode or EncodeConfig()
    graph = build_transition_graph(spec, source, clip)
    output_args = encode.video_args()
    if source.has_audio:
        output_args += encode.audio_args()
    cmd = Command(
        inputs=[input_path, clip_path],
        output=output_path,
        graph=graph,
        maps=graph.sinks(),
        output_args=[*output_args, "-avoid_negative_ts", "make_zero"],
    )
    ffutil.run_ffmpeg(cmd, stage="transition")
    return output_path
