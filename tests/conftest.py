"""Shared test fixtures."""

from pathlib import Path

import pytest

from reelsmith.models import ProbeResult

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def make_probe(
    duration: float = 10.0,
    width: int = 1920,
    height: int = 1080,
    has_video: bool = True,
    has_audio: bool = True,
) -> ProbeResult:
    return ProbeResult(
        duration=duration,
        width=width if has_video else 0,
        height=height if has_video else 0,
        fps=30.0 if has_video else 0.0,
        has_video=has_video,
        has_audio=has_audio,
        audio_sample_rate=44100 if has_audio else 0,
        codec_video="h264" if has_video else "",
        codec_audio="aac" if has_audio else "",
    )


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"
