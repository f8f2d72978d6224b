"""HTTP routes for the Reelsmith API."""

import logging
import time
import uuid
from pathlib import Path

from flask import Blueprint, current_app, jsonify, request, send_file
from werkzeug.utils import secure_filename

from reelsmith.analyzers.transcribe import transcribe
from reelsmith.engine import EngineResult, apply_overlays, apply_transitions, process
from reelsmith.errors import HardStageFailure, ReelsmithError, ValidationError
from reelsmith.manifest import CaptionConfig, Manifest, parse_audios, parse_transitions
from reelsmith.models import Segment
from reelsmith.progress import tracker

log = logging.getLogger(__name__)

bp = Blueprint("api", __name__)

ALLOWED_TYPES = {"video/mp4", "video/mpeg", "video/quicktime"}
ALLOWED_SUFFIXES = {".mp4", ".mpeg", ".mpg", ".mov"}


def _dir(name: str) -> Path:
    path = Path(current_app.config["WORK_DIR"]) / name
    path.mkdir(parents=True, exist_ok=True)
    return path


def _error(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


def _save_upload() -> Path:
    """Store the ``video`` form file under uploads/ with a unique name."""
    f = request.files.get("video")
    if f is None or not f.filename:
        raise ValidationError("No file uploaded or invalid file type.")
    suffix = Path(f.filename).suffix.lower()
    if f.mimetype not in ALLOWED_TYPES and suffix not in ALLOWED_SUFFIXES:
        raise ValidationError("Only video files (MP4, MPEG, MOV) are allowed!")

    name = secure_filename(f.filename) or f"upload{suffix or '.mp4'}"
    path = _dir("uploads") / f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{name}"
    f.save(path)
    return path


def _output_path(upload: Path, stage: str) -> Path:
    return _dir("outputs") / f"{upload.stem}-{stage}-{int(time.time() * 1000)}.mp4"


def _work_dir(request_id: str) -> Path:
    return _dir("work") / secure_filename(request_id)


def _cleanup(upload: Path, work_dir: Path) -> None:
    upload.unlink(missing_ok=True)
    try:
        work_dir.rmdir()
    except OSError:
        pass


def _prune_progress() -> None:
    removed = tracker.prune(current_app.config["PROGRESS_TTL"])
    if removed:
        log.debug("Pruned %d finished progress entries", removed)


def _segments_json(segments: list[Segment]) -> list[dict]:
    return [{"start": s.start, "end": s.end, "text": s.text or ""} for s in segments]


def _download(result: EngineResult) -> dict:
    name = result.output_path.name
    return {"outputFile": name, "downloadUrl": f"/download/{name}"}


def _stats(result: EngineResult) -> dict:
    return {
        "originalDuration": round(result.duration_original, 3),
        "finalDuration": round(result.duration_final, 3),
        "silenceSegmentsRemoved": result.segments_removed,
        "fillerSegmentsRemoved": result.fillers_removed,
        "transitionsApplied": result.transitions_applied,
        "audiosApplied": result.audios_applied,
        "warnings": result.soft_failures,
        "processingTime": round(result.elapsed, 2),
    }


@bp.route("/process-video", methods=["POST"])
def process_video():
    _prune_progress()
    request_id = request.form.get("requestId") or uuid.uuid4().hex[:12]
    try:
        upload = _save_upload()
    except ValidationError as e:
        tracker.fail(request_id, str(e))
        return _error(str(e), 400)

    work_dir = _work_dir(request_id)
    try:
        transitions = parse_transitions(request.form.get("transitions"))
        audios = parse_audios(request.form.get("audios"))
        manifest = Manifest(
            input=upload,
            output=_output_path(upload, "final"),
            transitions=transitions,
            audios=audios,
        )
    except ValidationError as e:
        _cleanup(upload, work_dir)
        tracker.fail(request_id, str(e))
        return _error(str(e), 400)

    tracker.update(request_id, percent=0, message="Uploaded", done=False, error=None)
    try:
        result = process(
            manifest,
            request_id=request_id,
            tracker=tracker,
            assets_dir=current_app.config["ASSETS_DIR"],
            work_dir=work_dir,
        )
    except HardStageFailure as e:
        log.error("Request %s failed: %s", request_id, e)
        return _error(str(e), 500)
    finally:
        _cleanup(upload, work_dir)

    return jsonify({
        "success": True,
        **_download(result),
        "transcription": _segments_json(result.transcript_segments),
        "processingStats": _stats(result),
    })


@bp.route("/upload", methods=["POST"])
def upload_for_transcription():
    try:
        upload = _save_upload()
    except ValidationError as e:
        return _error(str(e), 400)

    try:
        segments = transcribe(upload, CaptionConfig())
    except ReelsmithError as e:
        log.error("Transcription failed: %s", e)
        return _error(str(e), 500)
    finally:
        upload.unlink(missing_ok=True)

    return jsonify({
        "success": True,
        "transcription": _segments_json(segments),
        "text": " ".join(s.text or "" for s in segments).strip(),
    })


def _single_stage(field: str, parse, run):
    _prune_progress()
    request_id = request.form.get("requestId") or uuid.uuid4().hex[:12]
    try:
        upload = _save_upload()
    except ValidationError as e:
        return _error(str(e), 400)

    work_dir = _work_dir(request_id)
    try:
        specs = parse(request.form.get(field))
        if not specs:
            raise ValidationError(f"{field} must name at least one item")
    except ValidationError as e:
        _cleanup(upload, work_dir)
        return _error(str(e), 400)

    try:
        result = run(
            upload,
            _output_path(upload, field),
            specs,
            assets_dir=current_app.config["ASSETS_DIR"],
            request_id=request_id,
            tracker=tracker,
            work_dir=work_dir,
        )
    except HardStageFailure as e:
        log.error("Request %s failed: %s", request_id, e)
        return _error(str(e), 500)
    finally:
        _cleanup(upload, work_dir)

    return jsonify({"success": True, **_download(result), "processingStats": _stats(result)})


@bp.route("/apply-transitions", methods=["POST"])
def apply_transitions_route():
    return _single_stage("transitions", parse_transitions, apply_transitions)


@bp.route("/apply-audio", methods=["POST"])
def apply_audio_route():
    return _single_stage("audios", parse_audios, apply_overlays)


@bp.route("/download/<filename>")
def download(filename: str):
    if secure_filename(filename) != filename:
        return _error("File not found", 404)
    path = _dir("outputs") / filename
    if not path.is_file():
        return _error("File not found", 404)
    return send_file(path, mimetype="video/mp4", as_attachment=True, download_name=filename)


@bp.route("/progress/<request_id>")
def progress(request_id: str):
    return jsonify(tracker.get(request_id).to_dict())
