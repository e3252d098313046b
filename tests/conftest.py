"""
Pytest configuration file for the subfix test suite.
"""

import json
from pathlib import Path
import pytest

from subfix_app.config import Status
from subfix_app.core.models import Anomaly, Segment
from subfix_app.core.transcribe import parse_segments
from subfix_app.data.job_store import JobStore

# Define path to fixture data
FIXTURE_PATH = Path(__file__).parent / "fixtures" / "sample_fixture.json"


class FakeModelClient:
    """Stands in for ModelClient: replays queued payloads in call order.

    A queued exception instance is raised instead of returned.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def generate_json(self, prompt, schema, media=None, mime_type=None):
        self.calls.append({"prompt": prompt, "schema": schema, "media": media, "mime_type": mime_type})
        if not self.responses:
            raise AssertionError("FakeModelClient ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture(scope="session")
def fixture_data():
    """Load JSON fixture into a python dict."""
    return json.loads(FIXTURE_PATH.read_text(encoding="utf-8"))


@pytest.fixture
def make_client():
    """Factory for fake model clients."""
    return FakeModelClient


@pytest.fixture
def fixture_client(fixture_data):
    """Fake client answering one transcription and one review request."""
    return FakeModelClient(fixture_data["transcription"], fixture_data["review"])


@pytest.fixture
def fixture_segments(fixture_data):
    """Segments recreated from the transcription payload."""
    return parse_segments(fixture_data["transcription"])


@pytest.fixture
def store():
    """Empty job store, isolated per test."""
    return JobStore()


@pytest.fixture
def media_file(tmp_path):
    """A small stand-in upload on disk."""
    path = tmp_path / "episode.mp3"
    path.write_bytes(b"ID3 fake audio")
    return path


@pytest.fixture
def completed_job(store, media_file):
    """A completed job whose anomalies include three unresolved "ther" flags.

    Returns:
        (store, job) where job is the snapshot taken after completion
    """
    job = store.create("episode.mp3", media_file.stat().st_size, "audio/mpeg", None, str(media_file))
    segments = [
        Segment(id=1, start_time="00:00:00,000", end_time="00:00:02,000",
                text="ther is a cat", original_text="ther is a cat"),
        Segment(id=2, start_time="00:00:02,000", end_time="00:00:04,000",
                text="over ther now", original_text="over ther now"),
        Segment(id=3, start_time="00:00:04,000", end_time="00:00:06,000",
                text="Ther it goes", original_text="Ther it goes"),
        Segment(id=4, start_time="00:00:06,000", end_time="00:00:08,000",
                text="over there now", original_text="over ther now"),
    ]
    anomalies = [
        Anomaly(id="a1", segment_id=1, flagged_text="ther", suggestion="there", confidence=0.9),
        Anomaly(id="a2", segment_id=2, flagged_text="ther", suggestion="there", confidence=0.9),
        Anomaly(id="a3", segment_id=3, flagged_text="Ther", suggestion="There", confidence=0.8),
        Anomaly(id="a4", segment_id=4, flagged_text="ther", suggestion="there", confidence=0.9,
                resolved=True, user_correction="there", context="Misspelling (Auto-applied)"),
        Anomaly(id="a5", segment_id=1, type="out_of_context", flagged_text="cat",
                suggestion="cast", confidence=0.6),
    ]
    store.set_status(job.id, Status.ANALYZING, 85)
    store.set_segments(job.id, segments)
    store.set_anomalies(job.id, anomalies)
    store.set_status(job.id, Status.COMPLETED, 100)
    return store, store.get(job.id)


@pytest.fixture
def patch_extract_audio(mocker, tmp_path):
    """Replace ffmpeg extraction with a copy of a dummy mp3.

    Returns:
        The mock; every call hands out a fresh file under tmp_path
    """
    counter = {"n": 0}

    def fake_extract(media_path):
        counter["n"] += 1
        out = tmp_path / f"extracted_{counter['n']}.mp3"
        out.write_bytes(b"extracted audio")
        return out

    return mocker.patch("subfix_app.core.media.extract_audio", side_effect=fake_extract)


# Define custom markers for categorizing tests
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow (may take longer to run)")


# Setup logging for tests
@pytest.fixture(scope="session", autouse=True)
def setup_logging():
    """Configure logging for tests."""
    import logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    yield
