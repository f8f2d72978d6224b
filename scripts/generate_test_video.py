#!/usr/bin/env python3
"""Generate synthetic media for exercising the Reelsmith pipeline.

Writes into the given directory (default ``tests/fixtures/media``):
  clip.mp4                           10 s, 440 Hz tone + blue, silent + black at 4-6 s
  assets/transitions/flash.mp4       1 s white flash, no audio
  assets/background-audio/hum.mp3    3 s 220 Hz tone, for looping overlays
"""

import subprocess
import sys
from pathlib import Path


def _ffmpeg(*args: str) -> None:
    subprocess.run(["ffmpeg", "-y", "-hide_banner", "-loglevel", "error", *args], check=True)


def generate_clip(output: Path) -> None:
    filter_complex = (
        "sine=f=440:d=4[a0];"
        "anullsrc=r=44100:cl=mono:d=2[s0];"
        "sine=f=440:d=4[a1];"
        "[a0][s0][a1]concat=n=3:v=0:a=1[aout];"
        "color=c=blue:s=320x240:d=4:r=30[v0];"
        "color=c=black:s=320x240:d=2:r=30[v1];"
        "color=c=blue:s=320x240:d=4:r=30[v2];"
        "[v0][v1][v2]concat=n=3:v=1:a=0[vout]"
    )
    _ffmpeg(
        "-filter_complex", filter_complex,
        "-map", "[vout]", "-map", "[aout]",
        "-c:v", "libx264", "-pix_fmt", "yuv420p", "-c:a", "aac",
        "-shortest", str(output),
    )


def generate_assets(root: Path) -> None:
    transitions = root / "transitions"
    tracks = root / "background-audio"
    transitions.mkdir(parents=True, exist_ok=True)
    tracks.mkdir(parents=True, exist_ok=True)

    _ffmpeg(
        "-f", "lavfi", "-i", "color=c=white:s=640x360:d=1:r=30",
        "-c:v", "libx264", "-pix_fmt", "yuv420p",
        str(transitions / "flash.mp4"),
    )
    _ffmpeg(
        "-f", "lavfi", "-i", "sine=f=220:d=3",
        "-c:a", "libmp3lame",
        str(tracks / "hum.mp3"),
    )


if __name__ == "__main__":
    out_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("tests/fixtures/media")
    out_dir.mkdir(parents=True, exist_ok=True)
    generate_clip(out_dir / "clip.mp4")
    generate_assets(out_dir / "assets")
    print(f"Generated media in {out_dir}")
