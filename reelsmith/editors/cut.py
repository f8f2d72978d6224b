"""Cut editor: keeps a list of time ranges and concatenates them."""

from pathlib import Path

from reelsmith import ffutil
from reelsmith.errors import ValidationError
from reelsmith.graph import Command, Filter, FilterGraph
from reelsmith.manifest import EncodeConfig
from reelsmith.models import ProbeResult, TimeRange

# Keep segments this close to the file bounds count as touching them.
EDGE_EPSILON = 1e-3


def covers_whole(keep: list[TimeRange], duration: float) -> bool:
    return (
        len(keep) == 1
        and keep[0].start <= EDGE_EPSILON
        and keep[0].end >= duration - EDGE_EPSILON
    )


def build_cut_graph(
    keep: list[TimeRange], duration: float, has_video: bool = True, has_audio: bool = True
) -> FilterGraph:
    """N parallel trims followed by one N-way concat, in source order.

    A segment reaching the end of the source is left open-ended so the tail
    is not lost to rounding.
    """
    if not keep:
        raise ValidationError("no content survives the cut")
    if not (has_video or has_audio):
        raise ValidationError("source has neither video nor audio")

    graph = FilterGraph()
    concat_inputs: list[str] = []
    for i, seg in enumerate(keep):
        bounds: dict[str, float] = {"start": seg.start}
        if seg.end < duration - EDGE_EPSILON:
            bounds["end"] = seg.end
        if has_video:
            graph.add(["0:v"], [Filter("trim", **bounds), Filter("setpts", "PTS-STARTPTS")], [f"v{i}"])
            concat_inputs.append(f"v{i}")
        if has_audio:
            graph.add(["0:a"], [Filter("atrim", **bounds), Filter("asetpts", "PTS-STARTPTS")], [f"a{i}"])
            concat_inputs.append(f"a{i}")

    outputs = (["outv"] if has_video else []) + (["outa"] if has_audio else [])
    graph.add(
        concat_inputs,
        [Filter("concat", n=len(keep), v=int(has_video), a=int(has_audio))],
        outputs,
    )
    return graph


def apply_cuts(
    input_path: Path,
    keep: list[TimeRange],
    output_path: Path,
    probe: ProbeResult,
    encode: EncodeConfig | None = None,
) -> Path:
    """Render only the keep ranges of ``input_path`` into ``output_path``."""
    if not keep:
        raise ValidationError("No keep segments found: entire video would be removed")

    if covers_whole(keep, probe.duration):
        return ffutil.stream_copy(input_path, output_path, stage="cut")

    encode = encode or EncodeConfig()
    graph = build_cut_graph(keep, probe.duration, probe.has_video, probe.has_audio)
    output_args: list[str] = []
    if probe.has_video:
        output_args += encode.video_args()
    if probe.has_audio:
        output_args += encode.audio_args()
    cmd = Command(
        inputs=[input_path],
        output=output_path,
        graph=graph,
        maps=graph.sinks(),
        output_args=output_args,
    )
    ffutil.run_ffmpeg(cmd, stage="cut")
    return output_path
