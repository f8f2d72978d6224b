"""Zoom editor: an eased punch-in over the first seconds of a clip.

The zoom factor at time ``t`` is ``start + (end - start) * ease(p)`` with
``p = clamp(t / duration, 0, 1)``. :func:`zoom_factor` computes it in Python;
:func:`zoom_expr` renders the same formula as an ffmpeg expression, which
``zoompan`` evaluates once per frame.
"""

from pathlib import Path

from reelsmith import ffutil
from reelsmith.graph import Command, Filter, FilterGraph
from reelsmith.manifest import EncodeConfig, ZoomSpec
from reelsmith.models import ProbeResult


def ease(p: float, easing: str) -> float:
    """Map normalized progress ``p`` in [0, 1] through an easing curve."""
    p = min(max(p, 0.0), 1.0)
    if easing == "linear":
        return p
    if easing == "ease-in":
        return p * p
    if easing == "ease-out":
        return 1 - (1 - p) * (1 - p)
    if easing == "ease-in-out":
        return p * p * (3 - 2 * p)
    raise ValueError(f"unknown easing {easing!r}")


def zoom_factor(t: float, spec: ZoomSpec) -> float:
    p = min(max(t / spec.duration, 0.0), 1.0)
    return spec.start_zoom + (spec.end_zoom - spec.start_zoom) * ease(p, spec.easing)


def _ease_expr(p: str, easing: str) -> str:
    if easing == "linear":
        return p
    if easing == "ease-in":
        return f"pow({p},2)"
    if easing == "ease-out":
        return f"1-pow(1-{p},2)"
    if easing == "ease-in-out":
        return f"{p}*{p}*(3-2*{p})"
    raise ValueError(f"unknown easing {easing!r}")


def zoom_expr(spec: ZoomSpec, duration: float | None = None, var: str = "it") -> str:
    """ffmpeg expression for the zoom factor as a function of ``var``.

    ``it`` is the input frame timestamp inside ``zoompan``.
    """
    duration = duration if duration is not None else spec.duration
    p = f"min(max({var}/{duration:g},0),1)"
    return f"({spec.start_zoom:g}+({spec.end_zoom:g}-{spec.start_zoom:g})*({_ease_expr(p, spec.easing)}))"


def _zoom_filters(spec: ZoomSpec, duration: float, probe: ProbeResult) -> list[Filter]:
    # d=1 emits one frame per input frame, so the clip length is unchanged.
    fps = probe.fps if probe.fps > 0 else 30.0
    return [
        Filter(
            "zoompan",
            z=zoom_expr(spec, duration),
            x="(iw-iw/zoom)/2",
            y="(ih-ih/zoom)/2",
            d=1,
            s=f"{probe.width}x{probe.height}",
            fps=fps,
        ),
        Filter("setsar", 1),
    ]


def build_zoom_graph(spec: ZoomSpec, probe: ProbeResult) -> FilterGraph:
    """Zoom the whole clip, or a zoomed head plus untouched tail when the
    zoom is shorter than the clip."""
    clip_duration = max(probe.duration, 0.01)
    duration = min(spec.duration, clip_duration)
    zoom = _zoom_filters(spec, duration, probe)

    graph = FilterGraph()
    if duration >= clip_duration:
        graph.add(["0:v"], zoom, ["zoomed"])
        return graph

    graph.add(["0:v"], [Filter("split", 2)], ["vhead", "vtail"])
    graph.add(
        ["vhead"],
        [Filter("trim", start=0.0, end=duration), Filter("setpts", "PTS-STARTPTS"), *zoom],
        ["va"],
    )
    graph.add(
        ["vtail"],
        [Filter("trim", start=duration), Filter("setpts", "PTS-STARTPTS"), Filter("setsar", 1)],
        ["vb"],
    )
    graph.add(["va", "vb"], [Filter("concat", n=2, v=1, a=0)], ["zoomed"])
    return graph


def apply_zoom(
    input_path: Path,
    output_path: Path,
    spec: ZoomSpec,
    probe: ProbeResult,
    encode: EncodeConfig | None = None,
) -> Path:
    if not probe.has_video:
        return ffutil.stream_copy(input_path, output_path, stage="zoom")

    encode = encode or EncodeConfig()
    graph = build_zoom_graph(spec, probe)
    cmd = Command(
        inputs=[input_path],
        output=output_path,
        graph=graph,
        maps=["zoomed", "0:a?"],
        output_args=[*encode.video_args(), "-c:a", "copy", "-avoid_negative_ts", "make_zero"],
    )
    ffutil.run_ffmpeg(cmd, stage="zoom")
    return output_path
