"""Error taxonomy for the editing pipeline."""


class ReelsmithError(Exception):
    """Base error for Reelsmith."""


class ValidationError(ReelsmithError, ValueError):
    """Malformed spec, unknown asset, or an edit that leaves nothing behind."""


class ExternalProcessFailure(ReelsmithError):
    """ffmpeg/ffprobe or the transcriber failed.

    ``diagnostic`` holds the tail of the collaborator's error output.
    """

    def __init__(self, stage: str, message: str, diagnostic: str = ""):
        self.stage = stage
        self.diagnostic = diagnostic
        text = f"{stage}: {message}"
        if diagnostic:
            text = f"{text}\n{diagnostic}"
        super().__init__(text)


class StageFailure(ReelsmithError):
    """A pipeline stage failed; ``cause`` is the underlying error."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} failed: {cause}")


class HardStageFailure(StageFailure):
    """Raised when a stage that must succeed fails. Aborts the pipeline."""


class SoftStageFailure(StageFailure):
    """Recorded when an optional stage fails. The pipeline keeps going."""
