"""Unit tests for the ClipStudio job API."""

import io
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from clipstudio.ffutil import InvalidInputError, MediaProcessingError
from clipstudio.web import create_app, routes
from clipstudio.web.routes import GENERIC_FAILURE


@pytest.fixture
def app(tmp_path):
    app = create_app(work_dir=tmp_path)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def _upload(client, filename="test.mp4", content=b"fake video data"):
    return client.post(
        "/api/upload",
        data={"file": (io.BytesIO(content), filename)},
        content_type="multipart/form-data",
    )


def _wait_for(client, job_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        data = client.get(f"/api/jobs/{job_id}/status").get_json()
        if data["status"] in ("done", "error"):
            return data
        time.sleep(0.02)
    raise AssertionError("job did not finish")


class TestUpload:
    def test_upload_success(self, client):
        resp = _upload(client)
        assert resp.status_code == 200
        data = resp.get_json()
        assert "job_id" in data
        assert data["filename"] == "test.mp4"

    def test_upload_no_file(self, client):
        resp = client.post("/api/upload")
        assert resp.status_code == 400

    def test_upload_creates_file(self, client, tmp_path):
        resp = _upload(client, content=b"CONTENT")
        job_id = resp.get_json()["job_id"]
        input_file = tmp_path / job_id / "input.mp4"
        assert input_file.exists()
        assert input_file.read_bytes() == b"CONTENT"


class TestProcess:
    def test_process_unknown_job(self, client):
        resp = client.post(
            "/api/jobs/nonexistent/process",
            json={"silence_cut": {"enabled": True}},
        )
        assert resp.status_code == 404

    def test_bad_config_rejected(self, client):
        job_id = _upload(client).get_json()["job_id"]
        resp = client.post(
            f"/api/jobs/{job_id}/process",
            json={"silence_cut": {"enabled": True, "padding": -1}},
        )
        assert resp.status_code == 400

    @patch("clipstudio.web.routes.process")
    def test_process_completes(self, mock_process, client):
        mock_result = MagicMock()
        mock_result.output_path = Path("/tmp/out.mp4")
        mock_result.duration_original = 22.0
        mock_result.duration_final = 15.0
        mock_result.segments_removed = 3
        mock_result.cue_count = 0
        mock_process.return_value = mock_result

        job_id = _upload(client).get_json()["job_id"]
        resp = client.post(
            f"/api/jobs/{job_id}/process",
            json={"silence_cut": {"enabled": True, "noise_db": -40}},
        )
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "started"

        data = _wait_for(client, job_id)
        assert data["status"] == "done"
        assert data["result"]["segments_removed"] == 3

        manifest = mock_process.call_args[0][0]
        assert manifest.silence_cut.enabled is True
        assert manifest.silence_cut.noise_db == -40.0
        assert mock_process.call_args.kwargs["cancel"] is not None

    @patch("clipstudio.web.routes.process")
    def test_media_failure_is_generic(self, mock_process, client):
        mock_process.side_effect = MediaProcessingError("concat failed (rc=1)", "moov atom not found")
        job_id = _upload(client).get_json()["job_id"]
        client.post(f"/api/jobs/{job_id}/process", json={"silence_cut": {"enabled": True}})

        data = _wait_for(client, job_id)
        assert data["status"] == "error"
        assert data["error"] == GENERIC_FAILURE
        assert "moov" not in data["error"]

    @patch("clipstudio.web.routes.process")
    def test_invalid_input_message_shown(self, mock_process, client):
        mock_process.side_effect = InvalidInputError("input.mp4 is entirely silent; nothing left to keep")
        job_id = _upload(client).get_json()["job_id"]
        client.post(f"/api/jobs/{job_id}/process", json={"silence_cut": {"enabled": True}})

        data = _wait_for(client, job_id)
        assert "entirely silent" in data["error"]


class TestCancel:
    def test_cancel_unknown_job(self, client):
        assert client.post("/api/jobs/nonexistent/cancel").status_code == 404

    def test_cancel_idle_job(self, client):
        job_id = _upload(client).get_json()["job_id"]
        assert client.post(f"/api/jobs/{job_id}/cancel").status_code == 409


class TestStatus:
    def test_status_after_upload(self, client):
        job_id = _upload(client).get_json()["job_id"]
        resp = client.get(f"/api/jobs/{job_id}/status")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "uploaded"

    def test_status_unknown_job(self, client):
        resp = client.get("/api/jobs/nonexistent/status")
        assert resp.status_code == 404


class TestDownload:
    def test_download_not_complete(self, client):
        job_id = _upload(client).get_json()["job_id"]
        resp = client.get(f"/api/jobs/{job_id}/result")
        assert resp.status_code == 409

    def test_download_unknown_job(self, client):
        resp = client.get("/api/jobs/nonexistent/result")
        assert resp.status_code == 404


class TestAppFactory:
    def test_unknown_route_is_json(self, client):
        resp = client.get("/nope")
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Not found"}

    def test_upload_limit(self, tmp_path):
        app = create_app(work_dir=tmp_path, max_upload_bytes=10)
        resp = _upload(app.test_client(), content=b"x" * 1024)
        assert resp.status_code == 413


class TestJobEviction:
    @pytest.fixture(autouse=True)
    def _isolated_store(self):
        with patch.dict(routes._jobs, clear=True):
            yield

    def test_oldest_finished_jobs_evicted_on_upload(self, tmp_path):
        client = create_app(work_dir=tmp_path, max_finished_jobs=1).test_client()
        first = _upload(client).get_json()["job_id"]
        second = _upload(client).get_json()["job_id"]
        running = _upload(client).get_json()["job_id"]
        routes._jobs[first].update(status="done", finished_at=1.0)
        routes._jobs[second].update(status="error", finished_at=2.0)
        routes._jobs[running]["status"] = "processing"

        newest = _upload(client).get_json()["job_id"]

        assert client.get(f"/api/jobs/{first}/status").status_code == 404
        assert not (tmp_path / first).exists()
        assert client.get(f"/api/jobs/{second}/status").status_code == 200
        assert client.get(f"/api/jobs/{running}/status").get_json()["status"] == "processing"
        assert client.get(f"/api/jobs/{newest}/status").get_json()["status"] == "uploaded"

    def test_unfinished_jobs_never_evicted(self, tmp_path):
        client = create_app(work_dir=tmp_path, max_finished_jobs=0).test_client()
        ids = [_upload(client).get_json()["job_id"] for _ in range(3)]
        assert all(client.get(f"/api/jobs/{i}/status").status_code == 200 for i in ids)
