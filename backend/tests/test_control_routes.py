"""
Tests for the control API.

The app runs with its real lifespan (background engine bootstrap) and
an in-memory engine, so conversions settle in a few event-loop turns.
"""

import asyncio
import time

import pytest
from fastapi.testclient import TestClient

from fakes import FakeEngine
from webm2mp4.config import ConverterSettings
from webm2mp4.execution.adapter import EngineAdapter
from webm2mp4.execution.errors import EngineLoadError, TranscodeError
from webm2mp4.main import create_app

WEBM = b"\x1a\x45\xdf\xa3" + b"\x00" * 60
MP4 = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 32


def make_client(engine: FakeEngine, recovery_delay: float = 0.05) -> TestClient:
    settings = ConverterSettings(recovery_delay_seconds=recovery_delay)
    app = create_app(settings, adapter=EngineAdapter(engine))
    return TestClient(app)


def wait_for_status(client: TestClient, status: str, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        job = client.get("/api/job").json()
        if job["status"] == status:
            return job
        if time.monotonic() > deadline:
            raise AssertionError(f"job stuck in {job['status']!r}, expected {status!r}")
        time.sleep(0.01)


def select(client: TestClient, filename: str = "clip.webm", media_type: str = "video/webm", body: bytes = WEBM):
    return client.post(
        "/api/job/select",
        params={"filename": filename},
        content=body,
        headers={"Content-Type": media_type},
    )


@pytest.fixture
def client():
    with make_client(FakeEngine(output=MP4, progress=[0.5, 1.0])) as c:
        wait_for_status(c, "idle")
        yield c


class TestHealth:

    def test_health_reports_engine(self, client):
        body = client.get("/health").json()
        assert body == {"status": "ok", "engine_ready": True, "job_status": "idle"}

    def test_root(self, client):
        assert client.get("/").json()["service"] == "webm2mp4"


class TestSelect:

    def test_webm_is_selected(self, client):
        response = select(client)

        assert response.status_code == 200
        job = response.json()
        assert job["status"] == "selected"
        assert job["source_file"]["name"] == "clip.webm"
        assert job["source_file"]["size_bytes"] == len(WEBM)
        assert job["source_file"]["size_label"] == "64 B"

    def test_content_type_parameters_are_ignored(self, client):
        response = select(client, media_type="video/webm; codecs=vp9")
        assert response.status_code == 200

    def test_wrong_type_is_422_and_stays_idle(self, client):
        """
        GIVEN: An idle service
        WHEN: A file declared as video/mp4 is posted
        THEN: 422 with the validation notification, job IDLE without source
        """
        response = select(client, filename="clip.mp4", media_type="video/mp4")

        assert response.status_code == 422
        body = response.json()
        assert body["accepted"] is False
        assert body["notification"]["kind"] == "validation_failed"
        assert body["notification"]["title"] == "Invalid File Type"
        assert body["job"]["status"] == "idle"
        assert body["job"]["source_file"] is None

    def test_filename_is_required(self, client):
        response = client.post("/api/job/select", content=WEBM, headers={"Content-Type": "video/webm"})
        assert response.status_code == 422

    def test_cancel(self, client):
        select(client)
        response = client.post("/api/job/cancel")
        assert response.status_code == 200
        assert response.json()["status"] == "idle"

    def test_cancel_without_selection_is_409(self, client):
        assert client.post("/api/job/cancel").status_code == 409


class TestConvert:

    def test_full_round_trip(self, client):
        select(client)

        response = client.post("/api/job/convert")
        assert response.status_code == 202
        assert response.json()["status"] == "converting"

        job = wait_for_status(client, "succeeded")
        assert job["progress_percent"] == 100
        assert job["output"]["filename"] == "clip.mp4"
        assert job["output"]["media_type"] == "video/mp4"

        download = client.get(job["output"]["url"])
        assert download.status_code == 200
        assert download.content == MP4
        assert download.headers["content-type"] == "video/mp4"
        assert 'filename="clip.mp4"' in download.headers["content-disposition"]

    def test_non_ascii_filename_downloads(self, client):
        """
        GIVEN: A source named with CJK characters
        WHEN: The converted output is downloaded
        THEN: 200, with an ASCII fallback name and the UTF-8 encoded name
        """
        select(client, filename="视频.webm")
        client.post("/api/job/convert")
        job = wait_for_status(client, "succeeded")
        assert job["output"]["filename"] == "视频.mp4"

        download = client.get(job["output"]["url"])

        assert download.status_code == 200
        assert download.content == MP4
        disposition = download.headers["content-disposition"]
        assert 'filename="__.mp4"' in disposition
        assert "filename*=UTF-8''%E8%A7%86%E9%A2%91.mp4" in disposition

    def test_quote_in_filename_is_escaped(self, client):
        select(client, filename='say "hi".webm')
        client.post("/api/job/convert")
        job = wait_for_status(client, "succeeded")

        download = client.get(job["output"]["url"])

        assert download.status_code == 200
        disposition = download.headers["content-disposition"]
        assert 'filename="say _hi_.mp4"' in disposition
        assert "filename*=UTF-8''say%20%22hi%22.mp4" in disposition

    def test_convert_without_selection_is_409(self, client):
        assert client.post("/api/job/convert").status_code == 409

    def test_reset_revokes_download(self, client):
        select(client)
        client.post("/api/job/convert")
        job = wait_for_status(client, "succeeded")
        url = job["output"]["url"]

        response = client.post("/api/job/reset")
        assert response.status_code == 200
        assert response.json()["status"] == "idle"
        assert response.json()["output"] is None

        assert client.get(url).status_code == 404

    def test_delete_output_is_idempotent(self, client):
        select(client)
        client.post("/api/job/convert")
        token = wait_for_status(client, "succeeded")["output"]["token"]

        first = client.delete(f"/api/outputs/{token}")
        second = client.delete(f"/api/outputs/{token}")

        assert first.json() == {"token": token, "revoked": True}
        assert second.json() == {"token": token, "revoked": False}
        assert client.get(f"/api/outputs/{token}").status_code == 404

    def test_unknown_output_is_404(self, client):
        assert client.get("/api/outputs/not-a-token").status_code == 404


class TestBusyEngine:

    def test_second_convert_and_reset_are_409(self):
        gate = asyncio.Event()
        engine = FakeEngine(output=MP4, gate=gate)

        with make_client(engine) as client:
            wait_for_status(client, "idle")
            select(client)
            assert client.post("/api/job/convert").status_code == 202

            assert client.post("/api/job/convert").status_code == 409
            assert client.post("/api/job/reset").status_code == 409
            assert select(client, filename="other.webm").status_code == 409

            client.portal.call(gate.set)
            wait_for_status(client, "succeeded")
            assert len(engine.execute_calls) == 1


class TestFailures:

    def test_conversion_failure_recovers(self):
        engine = FakeEngine(fail_execute=TranscodeError("Invalid data found", exit_code=1))

        with make_client(engine, recovery_delay=0.1) as client:
            wait_for_status(client, "idle")
            select(client)
            client.post("/api/job/convert")

            failed = wait_for_status(client, "failed")
            assert failed["output"] is None
            assert failed["engine_failed"] is False
            assert failed["failure_reason"] == "Invalid data found"

            wait_for_status(client, "idle")

            notifications = client.get("/api/notifications").json()["notifications"]
            assert [n["kind"] for n in notifications] == ["transcode_failed"]
            assert notifications[0]["title"] == "Conversion Failed"

    def test_engine_load_failure_is_terminal(self):
        engine = FakeEngine(fail_load=EngineLoadError("ffmpeg is not installed or not in PATH"))

        with make_client(engine) as client:
            job = wait_for_status(client, "failed")
            assert job["engine_failed"] is True
            assert job["engine_ready"] is False

            assert client.post("/api/job/reset").status_code == 409
            assert select(client).status_code == 409

            notifications = client.get("/api/notifications", params={"limit": 1}).json()["notifications"]
            assert notifications[0]["kind"] == "engine_load_failed"
            assert notifications[0]["title"] == "Failed to load converter"


def test_shutdown_closes_engine():
    engine = FakeEngine(output=MP4)
    with make_client(engine) as client:
        wait_for_status(client, "idle")
        select(client)
        client.post("/api/job/convert")
        wait_for_status(client, "succeeded")

    assert engine.closed
