"""Unit tests for the Reelsmith HTTP API."""

import io
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from reelsmith.engine import EngineResult
from reelsmith.errors import ExternalProcessFailure, HardStageFailure, ValidationError
from reelsmith.models import Segment
from reelsmith.progress import tracker
from reelsmith.web import create_app


@pytest.fixture
def app(tmp_path):
    app = create_app(work_dir=tmp_path, assets_dir=tmp_path / "assets")
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def _post(client, url, filename="test.mp4", content=b"fake video data", **form):
    data = {"video": (io.BytesIO(content), filename), **form}
    return client.post(url, data=data, content_type="multipart/form-data")


def _result(tmp_path: Path, **kwargs) -> EngineResult:
    defaults = dict(
        output_path=tmp_path / "outputs" / "test-final-1.mp4",
        duration_original=12.0,
        duration_final=9.5,
        segments_removed=2,
        transcript_segments=[Segment(start=0.0, end=1.0, label="caption", text="Hi")],
    )
    defaults.update(kwargs)
    return EngineResult(**defaults)


class TestProcessVideo:
    @patch("reelsmith.web.routes.process")
    def test_success(self, mock_process, client, tmp_path):
        mock_process.return_value = _result(tmp_path)
        resp = _post(
            client,
            "/process-video",
            requestId="req-ok",
            transitions=json.dumps([{"transitionId": "flash", "time": 2}]),
            audios=json.dumps([{"trackId": "lofi", "volume": 0.2}]),
        )

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["success"] is True
        assert data["outputFile"] == "test-final-1.mp4"
        assert data["downloadUrl"] == "/download/test-final-1.mp4"
        assert data["transcription"] == [{"start": 0.0, "end": 1.0, "text": "Hi"}]
        assert data["processingStats"]["silenceSegmentsRemoved"] == 2
        assert data["processingStats"]["finalDuration"] == 9.5

        manifest = mock_process.call_args[0][0]
        assert manifest.transitions[0].transition_id == "flash"
        assert manifest.audios[0].volume == 0.2
        assert mock_process.call_args[1]["request_id"] == "req-ok"
        # the upload is removed once processing finishes
        assert list((tmp_path / "uploads").iterdir()) == []

    def test_no_file(self, client):
        resp = client.post("/process-video", data={"requestId": "req-nofile"})
        assert resp.status_code == 400
        assert resp.get_json()["success"] is False
        assert tracker.get("req-nofile").error

    def test_wrong_file_type(self, client):
        resp = _post(client, "/process-video", filename="notes.txt", requestId="req-txt")
        assert resp.status_code == 400
        assert "Only video files" in resp.get_json()["error"]

    @patch("reelsmith.web.routes.process")
    def test_malformed_transitions(self, mock_process, client, tmp_path):
        resp = _post(client, "/process-video", transitions="[{", requestId="req-bad")
        assert resp.status_code == 400
        assert "not valid JSON" in resp.get_json()["error"]
        mock_process.assert_not_called()
        assert list((tmp_path / "uploads").iterdir()) == []

    @patch("reelsmith.web.routes.process")
    def test_hard_failure(self, mock_process, client, tmp_path):
        mock_process.side_effect = HardStageFailure(
            "silence", ValidationError("No speech segments survive silence removal")
        )
        resp = _post(client, "/process-video", requestId="req-fail")
        assert resp.status_code == 500
        assert "No speech segments" in resp.get_json()["error"]
        assert list((tmp_path / "uploads").iterdir()) == []


class TestUploadForTranscription:
    @patch("reelsmith.web.routes.transcribe")
    def test_returns_transcript(self, mock_transcribe, client):
        mock_transcribe.return_value = [
            Segment(start=0.0, end=1.0, label="caption", text="Hello"),
            Segment(start=1.0, end=2.0, label="caption", text="world"),
        ]
        resp = _post(client, "/upload")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["text"] == "Hello world"
        assert len(data["transcription"]) == 2

    @patch("reelsmith.web.routes.transcribe")
    def test_transcriber_failure(self, mock_transcribe, client):
        mock_transcribe.side_effect = ExternalProcessFailure("transcribe", "whisper failed")
        resp = _post(client, "/upload")
        assert resp.status_code == 500
        assert resp.get_json()["success"] is False


class TestSingleStageRoutes:
    @patch("reelsmith.web.routes.apply_transitions")
    def test_apply_transitions(self, mock_apply, client, tmp_path):
        mock_apply.return_value = _result(tmp_path, transitions_applied=1)
        resp = _post(client, "/apply-transitions", transitions=json.dumps([{"transitionId": "flash", "time": 1}]))
        assert resp.status_code == 200
        assert resp.get_json()["processingStats"]["transitionsApplied"] == 1
        specs = mock_apply.call_args[0][2]
        assert specs[0].transition_id == "flash"

    @patch("reelsmith.web.routes.apply_transitions")
    def test_apply_transitions_requires_items(self, mock_apply, client):
        resp = _post(client, "/apply-transitions", transitions="[]")
        assert resp.status_code == 400
        mock_apply.assert_not_called()

    @patch("reelsmith.web.routes.apply_overlays")
    def test_apply_audio(self, mock_apply, client, tmp_path):
        mock_apply.return_value = _result(tmp_path, audios_applied=1)
        resp = _post(client, "/apply-audio", audios=json.dumps([{"trackId": "lofi"}]))
        assert resp.status_code == 200
        assert resp.get_json()["processingStats"]["audiosApplied"] == 1

    @patch("reelsmith.web.routes.apply_overlays")
    def test_apply_audio_bad_volume(self, mock_apply, client):
        resp = _post(client, "/apply-audio", audios=json.dumps([{"trackId": "lofi", "volume": 3}]))
        assert resp.status_code == 400
        mock_apply.assert_not_called()


class TestDownload:
    def test_existing_file(self, client, tmp_path):
        outputs = tmp_path / "outputs"
        outputs.mkdir()
        (outputs / "clip-final-1.mp4").write_bytes(b"VIDEO")
        resp = client.get("/download/clip-final-1.mp4")
        assert resp.status_code == 200
        assert resp.data == b"VIDEO"
        assert resp.mimetype == "video/mp4"
        assert "attachment" in resp.headers["Content-Disposition"]
        assert "clip-final-1.mp4" in resp.headers["Content-Disposition"]

    def test_missing_file(self, client):
        resp = client.get("/download/nope.mp4")
        assert resp.status_code == 404

    def test_unsafe_name(self, client):
        resp = client.get("/download/my%20file.mp4")
        assert resp.status_code == 404


class TestProgress:
    def test_unknown_request_is_pending(self, client):
        resp = client.get("/progress/never-seen")
        assert resp.status_code == 200
        assert resp.get_json() == {"percent": 0.0, "message": "pending", "done": False}

    def test_reports_tracker_state(self, client):
        tracker.update("req-progress", percent=55, message="Transcribing audio")
        data = client.get("/progress/req-progress").get_json()
        assert data["percent"] == 55.0
        assert data["message"] == "Transcribing audio"
        assert data["done"] is False

    @patch("reelsmith.web.routes.process")
    def test_finished_entries_pruned_on_new_request(self, mock_process, app, client, tmp_path):
        mock_process.return_value = _result(tmp_path)
        app.config["PROGRESS_TTL"] = 60
        with patch("reelsmith.progress.time.time", return_value=1000.0):
            tracker.complete("req-stale")
            tracker.update("req-running", percent=40, message="Cutting")
        tracker.complete("req-recent")

        _post(client, "/process-video", requestId="req-new")

        assert tracker.get("req-stale").message == "pending"
        assert tracker.get("req-running").percent == 40.0
        assert tracker.get("req-recent").done is True
