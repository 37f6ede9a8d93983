import threading

import pytest

from pixeldiag.config import Thresholds
from pixeldiag.models import DecodedPayload, IssueType, RequestRecord, RequestType, Vendor
from pixeldiag.store import DuplicateRequestError, RequestStore


def make_record(request_id, timestamp=1000, request_type=RequestType.IMPRESSION,
                url="https://px.example/imp?pid=5", vendor_id="v1", **kwargs):
    return RequestRecord(
        id=request_id,
        url=url,
        timestamp=timestamp,
        vendor=Vendor(id=vendor_id, name=vendor_id),
        vendor_request_type=request_type,
        **kwargs,
    )


class TestLifecycle:
    def test_start_adds_record(self, store):
        store.start(make_record("a"), now=1000)
        assert len(store) == 1
        assert store.get("a").issues == []

    def test_duplicate_id_rejected(self, store):
        store.start(make_record("a"), now=1000)
        with pytest.raises(DuplicateRequestError):
            store.start(make_record("a"), now=1000)

    def test_complete_runs_detection(self, store):
        store.start(make_record("a"), now=1000)
        record = store.complete("a", status_code=404, duration=4000)
        assert record.completed is True
        assert [i.type for i in record.issues] == [IssueType.SLOW_RESPONSE, IssueType.FAILED]

    def test_fail_runs_detection(self, store):
        store.start(make_record("a"), now=1000)
        record = store.fail("a", "ECONNRESET")
        assert record.completed is True
        assert record.issues[0].details == "ECONNRESET"

    def test_second_completion_ignored(self, store):
        store.start(make_record("a"), now=1000)
        store.complete("a", status_code=500, duration=10)
        assert store.complete("a", status_code=500, duration=10) is None
        assert store.fail("a", "late error") is None
        assert len(store.get("a").issues) == 1

    def test_badly_typed_completion_leaves_record_pending(self, store):
        store.start(make_record("a"), now=1000)
        with pytest.raises(TypeError):
            store.complete("a", status_code="404", duration=10)
        record = store.get("a")
        assert record.completed is False
        assert record.status_code is None
        retried = store.complete("a", status_code=404, duration=10)
        assert [i.type for i in retried.issues] == [IssueType.FAILED]

    def test_unknown_id_ignored(self, store):
        assert store.complete("missing", 200, 10) is None
        assert store.fail("missing", "boom") is None

    def test_max_records_evicts_oldest(self):
        store = RequestStore(max_records=2)
        for rid in ("a", "b", "c"):
            store.start(make_record(rid), now=1000)
        assert [r.id for r in store.snapshot()] == ["b", "c"]

    def test_clear(self, store):
        store.start(make_record("a"), now=1000)
        store.clear()
        assert len(store) == 0
        assert store.snapshot() == []


class TestAnalyze:
    def test_merges_duplicate_issue(self, store):
        store.start(make_record("a", timestamp=1000), now=1000)
        store.start(make_record("b", timestamp=1500), now=1500)
        appended = store.analyze()
        assert list(appended) == ["b"]
        assert [i.type for i in store.get("b").issues] == [IssueType.DUPLICATE_PIXEL]

    def test_repeat_analysis_appends_nothing(self, store):
        store.start(make_record("a", timestamp=1000), now=1000)
        store.start(make_record("b", timestamp=1500), now=1500)
        store.analyze()
        assert store.analyze() == {}
        assert len(store.get("b").issues) == 1

    def test_keeps_per_record_issues(self, store):
        store.start(make_record("a", timestamp=1000), now=1000)
        store.start(make_record("b", timestamp=1500), now=1500)
        store.complete("b", status_code=500, duration=20)
        store.analyze()
        assert [i.type for i in store.get("b").issues] == [IssueType.FAILED, IssueType.DUPLICATE_PIXEL]

    def test_out_of_order_merged(self, store):
        store.start(make_record("V", 1000, RequestType.VIEWABILITY, url="https://m.example/v", vendor_id="v2"), now=1000)
        store.start(make_record("I", 2000, RequestType.IMPRESSION, url="https://m.example/i", vendor_id="v2"), now=2000)
        store.analyze()
        issue = store.get("V").issues[0]
        assert issue.type == IssueType.OUT_OF_ORDER
        assert issue.related_request_ids == ("V", "I")

    def test_auto_analyze(self):
        store = RequestStore(auto_analyze=True)
        store.start(make_record("a", timestamp=1000), now=1000)
        store.start(make_record("b", timestamp=1200), now=1200)
        assert [i.type for i in store.get("b").issues] == [IssueType.DUPLICATE_PIXEL]

    def test_custom_thresholds(self):
        store = RequestStore(thresholds=Thresholds(duplicate_window_ms=100))
        store.start(make_record("a", timestamp=1000), now=1000)
        store.start(make_record("b", timestamp=1500), now=1500)
        assert store.analyze() == {}

    def test_custom_placement_params(self):
        store = RequestStore(placement_params=["unit"])
        store.start(make_record("a", timestamp=1000, url="https://px.example/imp?unit=1"), now=1000)
        store.start(make_record("b", timestamp=1100, url="https://px.example/imp?unit=2"), now=1100)
        assert store.analyze() == {}


class TestSweepTimeouts:
    def test_flags_pending_once(self, store):
        store.start(make_record("a", timestamp=1000), now=1000)
        store.start(make_record("b", timestamp=1000), now=1000)
        store.complete("b", status_code=200, duration=50)
        assert store.sweep_timeouts(now=12_000) == ["a"]
        assert store.sweep_timeouts(now=20_000) == []
        assert [i.type for i in store.get("a").issues] == [IssueType.TIMEOUT]

    def test_not_yet_expired(self, store):
        store.start(make_record("a", timestamp=1000), now=1000)
        assert store.sweep_timeouts(now=5000) == []


class TestFilter:
    def test_only_issues_and_type(self, store):
        store.start(make_record("ok", timestamp=1000), now=1000)
        store.start(make_record("bad", timestamp=5000, request_type=RequestType.BID_REQUEST), now=5000)
        store.fail("bad", "boom")
        assert [r.id for r in store.filter(only_issues=True)] == ["bad"]
        assert [r.id for r in store.filter(issue_types=[IssueType.FAILED])] == ["bad"]
        assert store.filter(issue_types=[IssueType.TIMEOUT]) == []
        assert len(store.filter()) == 2

    def test_payload_query(self, store):
        payload = DecodedPayload(type="json", data={"tagid": "hero"}, raw='{"tagid":"hero"}')
        store.start(make_record("a", request_body=payload), now=1000)
        store.start(make_record("b", timestamp=9000), now=9000)
        assert [r.id for r in store.filter(query="HERO")] == ["a"]
        assert [r.id for r in store.filter(query="t.g", use_regex=True)] == ["a"]


class TestConcurrency:
    def test_parallel_starts_and_analysis(self):
        store = RequestStore(auto_analyze=True)

        def worker(prefix):
            for n in range(50):
                store.start(make_record(f"{prefix}-{n}", timestamp=n * 2000, url=f"https://px.example/{prefix}"), now=0)

        threads = [threading.Thread(target=worker, args=(p,)) for p in "abcd"]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store) == 200
        assert store.summary().total == 0
