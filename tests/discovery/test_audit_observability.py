"""
Observability Tests
===================

The audit log and metrics collector only record; they never filter
or interpret.
"""

from canvas.contracts import Error, ErrorCode
from discovery.observability import AuditEventType, AuditLog, MetricsCollector


class TestAuditLog:

    def test_entries_sequenced(self):
        log = AuditLog()
        log.record(AuditEventType.STATUS, "status", message="one")
        log.record(AuditEventType.SYSTEM, "reset")

        entries = log.get_entries()
        assert [e.sequence for e in entries] == [0, 1]
        assert entries[0].get("message") == "one"
        assert entries[0].get("missing") is None
        assert log.entry_count == 2

    def test_filter_by_type(self):
        log = AuditLog()
        log.record(AuditEventType.STATUS, "status")
        log.record(AuditEventType.AGENT_CALL, "distill_principle", prompt_hash="abc")

        calls = log.get_entries(AuditEventType.AGENT_CALL)
        assert [e.action for e in calls] == ["distill_principle"]

    def test_record_error(self):
        log = AuditLog()
        error = Error.create(ErrorCode.DUPLICATE_LINK, "Link already exists: a->b", link="a->b")

        entry = log.record_error(error)

        assert entry.event_type == AuditEventType.INVARIANT_VIOLATION
        assert entry.action == "DUPLICATE_LINK"
        assert entry.get("link") == "a->b"
        assert entry.get("message") == "Link already exists: a->b"

    def test_read_access_returns_copy(self):
        log = AuditLog()
        log.record(AuditEventType.SYSTEM, "reset")
        log.get_entries().clear()
        assert log.entry_count == 1


class TestMetrics:

    def test_counters_and_totals(self):
        metrics = MetricsCollector()
        metrics.increment("calls", {"call": "a"})
        metrics.increment("calls", {"call": "b"})

        assert metrics.total("calls") == 2.0
        assert metrics.get_metric("calls")[0].labels == (("call", "a"),)
        assert metrics.snapshot() == {"calls": 2.0}

    def test_aggregates(self):
        metrics = MetricsCollector()
        for value in (10.0, 20.0, 30.0):
            metrics.record("latency", value)

        aggregates = metrics.compute_aggregates("latency")
        assert aggregates["count"] == 3
        assert aggregates["min"] == 10.0
        assert aggregates["max"] == 30.0
        assert aggregates["avg"] == 20.0

    def test_unknown_metric(self):
        metrics = MetricsCollector()
        assert metrics.compute_aggregates("nothing") == {}
        assert metrics.total("nothing") == 0
