"""
State and correction tests on the in-memory job store.
"""
import threading

import pytest
from subfix_app.config import Status
from subfix_app.core.models import Anomaly, Segment


def _job(store, **kw):
    return store.create(kw.pop("file_name", "a.mp3"), kw.pop("file_size", 10), kw.pop("file_type", "audio/mpeg"), **kw)


def test_create_and_get(store):
    job = _job(store, user_context="Chess commentary", file_path="/tmp/x.mp3")
    assert job.status == Status.PENDING
    assert job.progress == 0
    assert job.user_context == "Chess commentary"
    assert job.file_path == "/tmp/x.mp3"

    fetched = store.get(job.id)
    assert fetched.id == job.id
    assert fetched.file_path == "/tmp/x.mp3"
    assert store.get("missing") is None


def test_create_defaults_file_type(store):
    job = store.create("a.mp3", 10, "")
    assert job.file_type == "audio/mpeg"


def test_get_returns_snapshot(store):
    """Mutating a returned job does not reach the store."""
    job = _job(store)
    job.status = Status.COMPLETED
    job.progress = 100
    assert store.get(job.id).status == Status.PENDING
    assert store.get(job.id).progress == 0


def test_status_progression(store):
    job = _job(store)
    assert store.set_status(job.id, Status.UPLOADING, 5)
    assert store.set_status(job.id, Status.PROCESSING, 10, "Extracting audio")
    assert store.get(job.id).status_message == "Extracting audio"

    # no message clears the stale one
    assert store.set_status(job.id, Status.PROCESSING, 20)
    snap = store.get(job.id)
    assert snap.status == Status.PROCESSING
    assert snap.progress == 20
    assert snap.status_message is None
    assert snap.completed_at is None

    assert store.set_status(job.id, Status.COMPLETED, 100)
    snap = store.get(job.id)
    assert snap.status == Status.COMPLETED
    assert snap.completed_at is not None
    assert snap.completed_at >= snap.created_at


def test_status_refuses_backward_and_terminal(store):
    job = _job(store)
    store.set_status(job.id, Status.TRANSCRIBING, 30)
    assert not store.set_status(job.id, Status.PROCESSING, 40)
    assert store.get(job.id).status == Status.TRANSCRIBING

    store.set_status(job.id, Status.COMPLETED, 100)
    assert not store.set_status(job.id, Status.COMPLETED, 100)
    assert not store.set_status(job.id, Status.ANALYZING, 85)
    assert store.get(job.id).status == Status.COMPLETED


def test_status_keeps_progress_when_omitted_and_clamps(store):
    job = _job(store)
    store.set_status(job.id, Status.PROCESSING, 150)
    assert store.get(job.id).progress == 100
    store.set_status(job.id, Status.TRANSCRIBING)
    assert store.get(job.id).progress == 100


def test_set_status_rejects_failed_and_unknown(store):
    job = _job(store)
    with pytest.raises(ValueError):
        store.set_status(job.id, Status.FAILED)
    with pytest.raises(ValueError):
        store.set_status(job.id, "exploding")


def test_set_status_unknown_job(store):
    assert store.set_status("missing", Status.PROCESSING, 10) is False


def test_set_error(store):
    job = _job(store)
    store.set_status(job.id, Status.TRANSCRIBING, 30)
    assert store.set_error(job.id, "quota exceeded")
    snap = store.get(job.id)
    assert snap.status == Status.FAILED
    assert snap.error_message == "quota exceeded"

    # failed is terminal for forward moves
    assert not store.set_status(job.id, Status.ANALYZING, 85)
    assert store.set_error("missing", "x") is False


def test_set_error_empty_message(store):
    job = _job(store)
    store.set_error(job.id, "")
    assert store.get(job.id).error_message == "Transcription failed"


def test_results_written_once(store):
    job = _job(store)
    first = [Segment(id=1, start_time="00:00:00,000", end_time="00:00:01,000", text="one")]
    second = [Segment(id=9, start_time="00:00:00,000", end_time="00:00:01,000", text="nine")]
    assert store.set_segments(job.id, first)
    assert not store.set_segments(job.id, second)
    assert [s.id for s in store.get(job.id).segments] == [1]

    assert store.set_anomalies(job.id, [])
    assert not store.set_anomalies(job.id, [Anomaly(segment_id=1, flagged_text="one", suggestion="1", confidence=0.5)])
    assert store.get(job.id).anomalies == []


def test_apply_correction(completed_job):
    store, job = completed_job
    assert store.apply_correction(job.id, "a2", "there")

    snap = store.get(job.id)
    anomaly = snap.anomaly("a2")
    assert anomaly.resolved
    assert anomaly.user_correction == "there"
    assert anomaly.context == 'Replaced "ther" with "there"'
    assert snap.segment(2).text == "over there now"
    assert snap.segment(2).original_text == "over ther now"
    # the other flags are untouched
    assert not snap.anomaly("a1").resolved
    assert snap.segment(1).text == "ther is a cat"


def test_apply_correction_is_idempotent(completed_job):
    store, job = completed_job
    assert store.apply_correction(job.id, "a1", "there")
    assert not store.apply_correction(job.id, "a1", "there")
    # a second application would have produced "therere is a cat"
    assert store.get(job.id).segment(1).text == "there is a cat"


def test_apply_correction_first_occurrence_only(store):
    job = _job(store)
    store.set_segments(job.id, [Segment(id=1, start_time="00:00:00,000",
                                        end_time="00:00:01,000", text="to to to")])
    store.set_anomalies(job.id, [Anomaly(id="x", segment_id=1, flagged_text="to",
                                         suggestion="two", confidence=0.5)])
    store.apply_correction(job.id, "x", "two")
    assert store.get(job.id).segment(1).text == "two to to"


def test_apply_correction_missing(completed_job, store):
    store, job = completed_job
    assert not store.apply_correction(job.id, "nope", "x")
    assert not store.apply_correction("nope", "a1", "x")

    fresh = _job(store)
    assert not store.apply_correction(fresh.id, "a1", "x")


def test_apply_to_similar(completed_job):
    store, job = completed_job
    count = store.apply_to_similar(job.id, "ther", "there")
    assert count == 3

    snap = store.get(job.id)
    for anomaly_id in ("a1", "a2", "a3"):
        assert snap.anomaly(anomaly_id).resolved
        assert snap.anomaly(anomaly_id).user_correction == "there"
    assert snap.segment(1).text == "there is a cat"
    assert snap.segment(2).text == "over there now"
    # each anomaly replaces its own flagged text
    assert snap.segment(3).text == "there it goes"

    # the earlier auto-fix keeps its own record
    a4 = snap.anomaly("a4")
    assert a4.context == "Misspelling (Auto-applied)"
    assert snap.segment(4).text == "over there now"
    assert not snap.anomaly("a5").resolved

    assert store.apply_to_similar(job.id, "ther", "there") == 0


def test_apply_to_similar_unknown_job(store):
    assert store.apply_to_similar("missing", "ther", "there") == 0


def test_find_similar(completed_job):
    store, job = completed_job
    similar = store.find_similar(job.id, "a1")
    assert sorted(a.id for a in similar) == ["a2", "a3"]
    assert store.find_similar(job.id, "a5") == []
    assert store.find_similar(job.id, "missing") == []
    assert store.find_similar("missing", "a1") == []


def test_update_segment_text(completed_job):
    store, job = completed_job
    assert store.update_segment_text(job.id, 1, "the cat is here")

    snap = store.get(job.id)
    assert snap.segment(1).text == "the cat is here"
    assert snap.segment(1).original_text == "ther is a cat"
    # anomalies keep pointing at their old text
    assert snap.anomaly("a1").flagged_text == "ther"
    assert not snap.anomaly("a1").resolved

    assert not store.update_segment_text(job.id, 99, "x")
    assert not store.update_segment_text("missing", 1, "x")


def test_concurrent_corrections_same_segment(store):
    """Two corrections on one segment both land."""
    job = _job(store)
    words = [f"w{i}" for i in range(20)]
    store.set_segments(job.id, [Segment(id=1, start_time="00:00:00,000",
                                        end_time="00:00:01,000", text=" ".join(words))])
    store.set_anomalies(job.id, [
        Anomaly(id=w, segment_id=1, flagged_text=f"{w} ", suggestion="", confidence=0.5)
        for w in words[:-1]
    ])

    threads = [
        threading.Thread(target=store.apply_correction, args=(job.id, w, f"{w.upper()} "))
        for w in words[:-1]
    ]
    for th in threads:
        th.start()
    for th in threads:
        th.join()

    text = store.get(job.id).segment(1).text
    assert text == " ".join(w.upper() for w in words[:-1]) + " w19"
