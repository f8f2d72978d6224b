"""Speech-to-text analyzer using OpenAI Whisper."""

import functools
import tempfile
from pathlib import Path

from reelsmith import ffutil
from reelsmith.errors import ExternalProcessFailure
from reelsmith.manifest import CaptionConfig
from reelsmith.models import Segment


@functools.lru_cache(maxsize=2)
def _load_model(name: str):
    import whisper

    return whisper.load_model(name)


def transcribe_audio(audio_path: Path, config: CaptionConfig) -> list[Segment]:
    """Run Whisper on an extracted WAV and return timed transcript segments."""
    try:
        model = _load_model(config.model)
        result = model.transcribe(str(audio_path), language=config.language)
    except Exception as e:
        raise ExternalProcessFailure("transcribe", f"whisper failed: {e}") from e

    segments: list[Segment] = []
    for seg in result.get("segments", []):
        text = seg["text"].strip()
        if not text:
            continue
        segments.append(
            Segment(
                start=float(seg["start"]),
                end=float(seg["end"]),
                label="caption",
                text=text,
            )
        )
    return segments


def transcribe(input_path: Path, config: CaptionConfig) -> list[Segment]:
    """Extract audio, run Whisper, and return timed transcript segments."""
    with tempfile.TemporaryDirectory() as tmpdir:
        wav_path = Path(tmpdir) / "audio.wav"
        ffutil.extract_audio(input_path, wav_path)
        return transcribe_audio(wav_path, config)
