"""
Unit tests for dependencies/trigger_log.py

Tests the bounded invalidation audit trail.
"""

import json
from datetime import datetime, timedelta

from cachedeps.dependencies import InvalidationLog, LogEntry, LogEntryKind
from cachedeps.persistence import Record


class TestLogEntry:
    """Test LogEntry dataclass."""

    def test_label(self):
        """Test label reads Type#pk."""
        entry = LogEntry(type_name="Account", pk=3)
        assert entry.label == "Account#3"
        assert LogEntry().label is None

    def test_to_dict(self):
        """Test serialization."""
        entry = LogEntry(kind=LogEntryKind.SOURCE, type_name="Account", pk=3, transaction_id="tx1")
        data = entry.to_dict()
        assert data["kind"] == "source"
        assert data["pk"] == 3
        assert data["transaction_id"] == "tx1"

    def test_to_dict_stringifies_complex_pk(self):
        """Test non-scalar primary keys are rendered as strings."""
        entry = LogEntry(type_name="Account", pk=("eu", 3))
        assert entry.to_dict()["pk"] == "('eu', 3)"


class TestInvalidationLog:
    """Test recording and queries."""

    def test_record(self):
        """Test an entry captures entity, cause and edge."""
        log = InvalidationLog()
        provider = Record(type_name="Provider", pk=1)
        account = Record(type_name="Account", pk=2)

        entry = log.record(LogEntryKind.STAMPED, account, "tx1", caused_by=provider, relationship="account")

        assert entry.type_name == "Account"
        assert entry.caused_by == "Provider#1"
        assert entry.relationship == "account"
        assert len(log) == 1

    def test_record_without_entity(self):
        """Test transaction-level entries carry metadata only."""
        log = InvalidationLog()
        entry = log.record(LogEntryKind.FLUSHED, transaction_id="tx1", sources=3)
        assert entry.type_name is None
        assert entry.metadata == {"sources": 3}

    def test_bounded(self):
        """Test oldest entries are trimmed."""
        log = InvalidationLog(max_entries=3)
        for pk in range(5):
            log.record(LogEntryKind.SOURCE, Record(type_name="Account", pk=pk))

        assert len(log) == 3
        assert [e.pk for e in log.entries()] == [2, 3, 4]

    def test_queries(self):
        """Test filtering by entity, kind and transaction."""
        log = InvalidationLog()
        account = Record(type_name="Account", pk=1)
        log.record(LogEntryKind.SOURCE, account, "tx1")
        log.record(LogEntryKind.STAMPED, account, "tx2")
        log.record(LogEntryKind.SKIPPED_VISITED, account, "tx2")
        log.record(LogEntryKind.STAMPED, Record(type_name="Provider", pk=1), "tx2")

        assert len(log.for_entity("Account", 1)) == 3
        assert len(log.by_kind(LogEntryKind.STAMPED)) == 2
        assert len(log.for_transaction("tx2")) == 3
        assert log.stamp_count("Account", 1) == 2

    def test_since(self):
        """Test filtering by timestamp."""
        log = InvalidationLog()
        log.record(LogEntryKind.SOURCE, Record(type_name="Account", pk=1))
        assert len(log.since(datetime.utcnow() - timedelta(minutes=1))) == 1
        assert log.since(datetime.utcnow() + timedelta(minutes=1)) == []

    def test_export_json(self, tmp_path):
        """Test export writes every entry."""
        log = InvalidationLog()
        log.record(LogEntryKind.SOURCE, Record(type_name="Account", pk=1))
        path = tmp_path / "log.json"

        assert log.export_json(path) == 1

        data = json.loads(path.read_text())
        assert data["entry_count"] == 1
        assert data["entries"][0]["type_name"] == "Account"

    def test_clear(self):
        """Test clear empties the log."""
        log = InvalidationLog()
        log.record(LogEntryKind.SOURCE, Record(type_name="Account", pk=1))
        log.clear()
        assert len(log) == 0
