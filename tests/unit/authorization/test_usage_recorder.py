"""
Tests for the detached usage recorder.
"""

import threading

import pytest

from api_key_service.authorization import UsageRecorder
from api_key_service.schemas import APIKeyCreate
from tests.fixtures.stores import FaultyStore


class GatedStore(FaultyStore):
    """Holds every increment until the gate opens."""

    def __init__(self, inner):
        super().__init__(inner)
        self.gate = threading.Event()

    def increment_counter(self, collection, document_id, path, amount=1):
        self.gate.wait(timeout=10)
        return super().increment_counter(collection, document_id, path, amount)


@pytest.fixture
def issued(api_key_service):
    return api_key_service.issue_key(APIKeyCreate(name="ci")).data


@pytest.fixture
def recorder(store, app_config):
    recorder = UsageRecorder(store)
    yield recorder
    recorder.shutdown(timeout=5)


class TestRecording:
    """Counters and timestamps."""

    def test_defaults_from_config(self, recorder, app_config):
        assert recorder.queue_size == app_config.usage.queue_size
        assert recorder.worker_count == app_config.usage.workers

    def test_record_updates_usage(self, recorder, store, issued):
        assert recorder.record(issued.id) is True
        assert recorder.flush(timeout=10) is True

        record = store.get_by_id("api_keys", issued.id)
        assert record.usage.total_requests == 1
        assert record.usage.last_used_at is not None

    def test_many_records_all_counted(self, recorder, store, issued):
        for _ in range(25):
            recorder.record(issued.id)
        recorder.flush(timeout=30)

        assert store.get_by_id("api_keys", issued.id).usage.total_requests == 25
        assert recorder.pending == 0

    def test_unknown_credential_is_harmless(self, recorder):
        recorder.record("missing")
        assert recorder.flush(timeout=10) is True
        assert recorder.failed == 0


class TestFailures:
    """Failures stay inside the recorder."""

    def test_store_failure_is_counted(self, store, issued, app_config):
        recorder = UsageRecorder(FaultyStore(store).fail("increment_counter"), workers=1)
        try:
            assert recorder.record(issued.id) is True
            recorder.flush(timeout=10)

            assert recorder.failed == 1
            assert store.get_by_id("api_keys", issued.id).usage.total_requests == 0
        finally:
            recorder.shutdown(timeout=5)

    def test_full_queue_drops_without_blocking(self, store, issued, app_config):
        gated = GatedStore(store)
        recorder = UsageRecorder(gated, queue_size=1, workers=1)
        try:
            results = [recorder.record(issued.id) for _ in range(5)]

            assert results.count(False) >= 3
            assert recorder.dropped == results.count(False)

            gated.gate.set()
            assert recorder.flush(timeout=10) is True
            total = store.get_by_id("api_keys", issued.id).usage.total_requests
            assert total == results.count(True)
        finally:
            gated.gate.set()
            recorder.shutdown(timeout=5)

    def test_flush_timeout(self, store, issued, app_config):
        gated = GatedStore(store)
        recorder = UsageRecorder(gated, workers=1)
        try:
            recorder.record(issued.id)
            assert recorder.flush(timeout=0.05) is False
        finally:
            gated.gate.set()
            recorder.shutdown(timeout=5)


class TestShutdown:
    def test_record_after_shutdown(self, store, app_config):
        recorder = UsageRecorder(store, workers=2)
        recorder.shutdown(timeout=5)

        assert recorder.record("anything") is False
        assert all(not thread.is_alive() for thread in recorder._threads)

    def test_shutdown_is_idempotent(self, store, app_config):
        recorder = UsageRecorder(store, workers=1)
        recorder.shutdown(timeout=5)
        recorder.shutdown(timeout=5)

    def test_pending_work_drains_before_stop(self, store, issued, app_config):
        recorder = UsageRecorder(store, workers=1)
        for _ in range(3):
            recorder.record(issued.id)
        recorder.shutdown(wait=True, timeout=10)

        assert store.get_by_id("api_keys", issued.id).usage.total_requests == 3

    def test_records_racing_shutdown_never_strand_work(self, store, issued, app_config):
        recorder = UsageRecorder(store, queue_size=500, workers=2)
        start = threading.Barrier(5)
        accepted = []

        def submit():
            start.wait(timeout=10)
            for _ in range(50):
                if recorder.record(issued.id):
                    accepted.append(True)

        threads = [threading.Thread(target=submit) for _ in range(4)]
        for thread in threads:
            thread.start()
        start.wait(timeout=10)
        recorder.shutdown(wait=True, timeout=10)
        for thread in threads:
            thread.join(timeout=10)

        assert recorder.flush(timeout=10) is True
        assert recorder.pending == 0
        total = store.get_by_id("api_keys", issued.id).usage.total_requests
        assert total == len(accepted)
