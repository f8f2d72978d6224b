"""Caption editor: formats transcript cues and burns them into video."""

from dataclasses import dataclass
from pathlib import Path

from reelsmith import ffutil
from reelsmith.graph import Command, Filter, FilterGraph
from reelsmith.manifest import CaptionConfig, EncodeConfig
from reelsmith.models import Segment


@dataclass(frozen=True)
class Cue:
    start: float
    end: float
    text: str


def _clean_text(text: str) -> str:
    # Commas delimit ASS event fields.
    text = text.replace(",", "")
    text = " ".join(text.replace("\r", " ").replace("\n", " ").split())
    return text


def build_cues(segments: list[Segment]) -> list[Cue]:
    """One cue per transcript segment, in input order, times rounded to ms."""
    return [
        Cue(
            start=round(seg.start, 3),
            end=round(seg.end, 3),
            text=_clean_text(seg.text or ""),
        )
        for seg in segments
    ]


def _split_ms(seconds: float) -> tuple[int, int, int, int]:
    total_ms = int(round(max(seconds, 0.0) * 1000))
    h, rest = divmod(total_ms, 3_600_000)
    m, rest = divmod(rest, 60_000)
    s, ms = divmod(rest, 1000)
    return h, m, s, ms


def _format_srt_time(seconds: float) -> str:
    h, m, s, ms = _split_ms(seconds)
    return f"{h:02d}:{m:02d}:{s:02d},{ms:03d}"


def _format_vtt_time(seconds: float) -> str:
    h, m, s, ms = _split_ms(seconds)
    return f"{h:02d}:{m:02d}:{s:02d}.{ms:03d}"


def _format_ass_time(seconds: float) -> str:
    # ASS event times have centisecond resolution.
    h, m, s, ms = _split_ms(seconds)
    return f"{h}:{m:02d}:{s:02d}.{ms // 10:02d}"


def format_srt(cues: list[Cue]) -> str:
    lines: list[str] = []
    for i, cue in enumerate(cues, 1):
        lines.append(str(i))
        lines.append(f"{_format_srt_time(cue.start)} --> {_format_srt_time(cue.end)}")
        lines.append(cue.text)
        lines.append("")
    return "\n".join(lines)


def format_vtt(cues: list[Cue]) -> str:
    lines: list[str] = ["WEBVTT", ""]
    for cue in cues:
        lines.append(f"{_format_vtt_time(cue.start)} --> {_format_vtt_time(cue.end)}")
        lines.append(cue.text)
        lines.append("")
    return "\n".join(lines)


ASS_HEADER = """\
[Script Info]
Title: Social Media Subtitles
ScriptType: v4.00+
WrapStyle: 0
ScaledBorderAndShadow: yes

[V4+ Styles]
Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding
Style: Default,{font},{size},&H00000000,&H00000000,&H00FFFFFF,&H00FFFFFF,-1,0,0,0,100,100,2,0,3,0,0,2,30,30,20,1

[Events]
Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text
"""


def format_ass(cues: list[Cue], config: CaptionConfig | None = None) -> str:
    """Render cues as an ASS script: black text on a white box, bottom center."""
    config = config or CaptionConfig()
    header = ASS_HEADER.format(font=config.font.replace(",", ""), size=config.font_size)
    events = [
        f"Dialogue: 0,{_format_ass_time(c.start)},{_format_ass_time(c.end)},Default,,0,0,0,,{c.text}"
        for c in cues
    ]
    return header + "\n".join(events) + ("\n" if events else "")


def write_captions(cues: list[Cue], path: Path, fmt: str, config: CaptionConfig | None = None) -> Path:
    """Write cues to ``path`` as "ass", "srt" or "vtt"."""
    if fmt == "ass":
        text = format_ass(cues, config)
    elif fmt == "vtt":
        text = format_vtt(cues)
    elif fmt == "srt":
        text = format_srt(cues)
    else:
        raise ValueError(f"unknown caption format {fmt!r}")
    path.write_text(text, encoding="utf-8")
    return path


def burn_captions(
    input_path: Path,
    subtitle_path: Path,
    output_path: Path,
    encode: EncodeConfig | None = None,
) -> Path:
    """Hard-burn an ASS script into video."""
    encode = encode or EncodeConfig()
    graph = FilterGraph()
    graph.add(["0:v"], [Filter("ass", filename=str(subtitle_path))], ["captioned"])
    cmd = Command(
        inputs=[input_path],
        output=output_path,
        graph=graph,
        maps=["captioned", "0:a?"],
        output_args=[*encode.video_args(), "-c:a", "copy"],
    )
    ffutil.run_ffmpeg(cmd, stage="burn-subtitles")
    return output_path
