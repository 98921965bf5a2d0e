import os
import time
from urllib.parse import unquote

import pytest
from fastapi.testclient import TestClient

from audioweaver.config import Settings
from audioweaver.errors import StorageError, SummarizationError
from audioweaver.jobs.store import InMemoryJobStore
from audioweaver.main import create_app

from conftest import NARRATIVE, FactoryRecorder, StubExtractor, StubSummarizer, StubSynthesizer

PDF = b"%PDF-1.4 fake document"


def _settings(tmp_path, **overrides):
    values = dict(
        _env_file=None,
        uploads_dir=str(tmp_path / "uploads"),
        audio_dir=str(tmp_path / "audio"),
        gemini_api_key="gemini-secret-1234",
        elevenlabs_api_key=None,
        collaborator_timeout_seconds=5.0,
        log_level="WARNING",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def make_client(tmp_path):
    def _make(summarizer=None, synthesizer=None, store=None, **settings_overrides):
        app = create_app(
            _settings(tmp_path, **settings_overrides),
            store=store or InMemoryJobStore(),
            extractor=StubExtractor(default="Hello world"),
            summarizer_factory=FactoryRecorder(summarizer or StubSummarizer(NARRATIVE)),
            synthesizer_factory=FactoryRecorder(synthesizer or StubSynthesizer()),
        )
        return TestClient(app)

    return _make


@pytest.fixture()
def client(make_client):
    with make_client() as client:
        yield client


def _upload(client, *names):
    files = [("files", (name, PDF, "application/pdf")) for name in names]
    response = client.post("/api/upload", files=files)
    assert response.status_code == 201, response.text
    return response.json()["upload_ids"]


def _wait_for_terminal(client, job_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while True:
        body = client.get(f"/api/process/{job_id}/status").json()
        if body["status"] in ("completed", "error") or time.monotonic() > deadline:
            return body
        time.sleep(0.02)


def _completed_summary(client):
    upload_ids = _upload(client, "notes.pdf")
    job_id = client.post("/api/process", json={"upload_ids": upload_ids}).json()["job_id"]
    body = _wait_for_terminal(client, job_id)
    assert body["status"] == "completed", body
    return body["summary"]


def test_upload_then_process_to_completion(client):
    upload_ids = _upload(client, "notes.pdf", "slides.pdf")
    assert len(upload_ids) == 2

    response = client.post(
        "/api/process",
        json={"upload_ids": upload_ids, "context": {"question": "What matters?"}},
    )
    assert response.status_code == 201
    started = response.json()
    assert started["status"] == "pending"

    body = _wait_for_terminal(client, started["job_id"])

    assert body["status"] == "completed"
    assert body["progress"] == 100
    assert body["phase"] == "Summary Ready"
    assert "error" not in body
    assert body["summary"]["title"] == "Title Line"
    assert body["summary"]["description"] == "Description paragraph"
    assert body["summary"]["audio_url"].startswith("/audio/")


def test_placeholder_audio_is_served(client):
    summary = _completed_summary(client)

    response = client.get(summary["audio_url"])

    assert response.status_code == 200
    assert response.headers["content-type"] == "audio/mpeg"
    assert response.content == b"\x00"


def test_synthesized_audio_download_uses_title(make_client):
    with make_client(elevenlabs_api_key="eleven-key") as client:
        summary = _completed_summary(client)
        response = client.get(f"/api/summaries/{summary['id']}/audio/download")

    assert response.status_code == 200
    assert response.content == b"ID3-fake-mp3"
    assert "Title Line.mp3" in unquote(response.headers["content-disposition"])


def test_summarization_failure_is_reported(make_client):
    summarizer = StubSummarizer(error=SummarizationError("quota exceeded"))
    with make_client(summarizer=summarizer) as client:
        job_id = client.post("/api/process", json={"upload_ids": _upload(client, "a.pdf")}).json()["job_id"]
        body = _wait_for_terminal(client, job_id)

    assert body["status"] == "error"
    assert body["phase"] == "Processing Failed"
    assert "quota exceeded" in body["error"]
    assert "summary" not in body


def test_unknown_uploads_end_in_error(client):
    job_id = client.post("/api/process", json={"upload_ids": ["nope"]}).json()["job_id"]

    body = _wait_for_terminal(client, job_id)

    assert body["status"] == "error"
    assert body["error"] == "No uploads found for this job"


def test_process_validation(client):
    assert client.post("/api/process", json={"upload_ids": []}).status_code == 422
    assert client.post("/api/process", json={}).status_code == 422
    assert client.post("/api/process", json={"upload_ids": [" "]}).status_code == 400


def test_unknown_job_status_is_404(client):
    response = client.get("/api/process/does-not-exist/status")

    assert response.status_code == 404
    assert response.json()["detail"] == "Processing job not found"


def test_non_pdf_upload_rejected(client):
    response = client.post("/api/upload", files=[("files", ("notes.txt", b"text", "text/plain"))])

    assert response.status_code == 400
    assert response.json()["detail"] == "Only PDF files are allowed"


def test_oversized_upload_rejected(make_client):
    with make_client(max_upload_bytes=4) as client:
        response = client.post("/api/upload", files=[("files", ("big.pdf", PDF, "application/pdf"))])

    assert response.status_code == 413


def test_failed_upload_record_removes_saved_files(make_client, tmp_path):
    class SecondUploadFails(InMemoryJobStore):
        async def create_upload(self, filename, filepath, size):
            if filename == "second.pdf":
                raise StorageError("insert failed")
            return await super().create_upload(filename, filepath, size)

    files = [
        ("files", ("first.pdf", PDF, "application/pdf")),
        ("files", ("second.pdf", PDF, "application/pdf")),
    ]
    with make_client(store=SecondUploadFails()) as client:
        response = client.post("/api/upload", files=files)

    assert response.status_code == 503
    assert response.json()["detail"] == "Storage is unavailable"
    assert os.listdir(tmp_path / "uploads") == []


def test_api_keys_are_masked(make_client):
    with make_client(gemini_api_key=None) as client:
        before = client.get("/api/settings/api-keys").json()
        saved = client.post(
            "/api/settings/api-keys",
            json={"gemini": "stored-gemini-9876", "elevenlabs": "stored-eleven-5555"},
        )
        after = client.get("/api/settings/api-keys").json()

    assert before["gemini"] == {"configured": False, "source": None, "masked": None}
    assert saved.status_code == 200
    assert after["gemini"]["configured"] is True
    assert after["gemini"]["source"] == "stored"
    assert after["gemini"]["masked"].endswith("9876")
    assert "stored-gemini" not in after["gemini"]["masked"]
    assert after["elevenlabs"]["masked"].endswith("5555")


def test_environment_key_reported_as_environment(client):
    body = client.get("/api/settings/api-keys").json()

    assert body["gemini"]["source"] == "environment"
    assert body["gemini"]["masked"].endswith("1234")
    assert body["elevenlabs"]["configured"] is False


def test_reflections_round_trip_and_export(client):
    summary_id = _completed_summary(client)["id"]

    empty_export = client.get(f"/api/summaries/{summary_id}/reflections/export")
    saved = client.post(
        f"/api/summaries/{summary_id}/reflection",
        json={"pride": "Finished it", "question": "What next?"},
    )
    listed = client.get(f"/api/summaries/{summary_id}/reflections").json()
    export = client.get(f"/api/summaries/{summary_id}/reflections/export")

    assert "No reflections yet." in empty_export.text
    assert saved.status_code == 201
    assert saved.json()["message"] == "Reflection saved successfully"
    assert [r["pride"] for r in listed["reflections"]] == ["Finished it"]
    assert export.text.startswith("Reflections on: Title Line")
    assert "What I'm proud of: Finished it" in export.text
    assert "Question I still have: What next?" in export.text


def test_audio_notes_sorted_by_timestamp(client):
    summary_id = _completed_summary(client)["id"]

    client.post(f"/api/summaries/{summary_id}/audio-notes", json={"timestamp": 90, "text": "later"})
    client.post(f"/api/summaries/{summary_id}/audio-notes", json={"timestamp": 12, "text": "early"})
    bad = client.post(f"/api/summaries/{summary_id}/audio-notes", json={"timestamp": -1, "text": "x"})
    notes = client.get(f"/api/summaries/{summary_id}/audio-notes").json()["notes"]

    assert bad.status_code == 422
    assert [n["text"] for n in notes] == ["early", "later"]


def test_unknown_summary_is_404(client):
    assert client.get("/api/summaries/missing").status_code == 404
    assert client.get("/api/summaries/missing/reflections").status_code == 404
    assert client.get("/audio/audio-missing.mp3").status_code == 404


def test_health(client):
    body = client.get("/health").json()

    assert body["status"] == "healthy"
    assert body["job_store_backend"] == "memory"
    assert body["gemini_env_configured"] is True
    assert body["elevenlabs_env_configured"] is False


def test_routes_answer_503_before_startup(tmp_path):
    app = create_app(_settings(tmp_path), store=InMemoryJobStore())
    client = TestClient(app)

    response = client.get("/api/process/anything/status")

    assert response.status_code == 503
    assert client.get("/health").json()["status"] == "starting"


def test_completed_status_returns_the_same_summary_every_time(client):
    job_id = client.post("/api/process", json={"upload_ids": _upload(client, "a.pdf")}).json()["job_id"]
    first = _wait_for_terminal(client, job_id)

    second = client.get(f"/api/process/{job_id}/status").json()
    third = client.get(f"/api/process/{job_id}/status").json()

    assert first["status"] == "completed"
    assert second["summary"] == first["summary"]
    assert third["summary"] == first["summary"]
