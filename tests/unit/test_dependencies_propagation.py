"""
Unit tests for dependencies/propagation.py

Tests the PropagationEngine against a mocked persistence layer.
"""

import pytest
from unittest.mock import Mock, call

from cachedeps.dependencies import (
    DependencyGraph,
    HookRunner,
    InvalidationLog,
    LogEntryKind,
    PropagationEngine,
)
from cachedeps.persistence import Record


def make_persistence(links=None, transaction_ids=()):
    """Mock persistence layer resolving relationships from ``links``."""
    links = links or {}
    persistence = Mock()
    persistence.resolve_relationship.side_effect = (
        lambda entity, name: links.get((entity.type_name, entity.pk, name))
    )
    persistence.current_transaction_id.return_value = transaction_ids[0] if transaction_ids else None
    persistence.active_transaction_ids.return_value = list(transaction_ids)
    persistence.transaction_depth.return_value = len(transaction_ids)
    return persistence


@pytest.fixture
def records():
    return {
        "gate": Record(type_name="PaymentGate", pk=1),
        "provider": Record(type_name="Provider", pk=1),
        "account": Record(type_name="Account", pk=1),
        "datum": Record(type_name="PersonalDatum", pk=1),
        "accountant": Record(type_name="Accountant", pk=1),
        "auditor": Record(type_name="Auditor", pk=1),
    }


@pytest.fixture
def links(records):
    return {
        ("PaymentGate", 1, "providers"): [records["provider"]],
        ("Provider", 1, "account"): records["account"],
        ("PersonalDatum", 1, "account"): records["account"],
        ("Accountant", 1, "account"): records["account"],
        ("Auditor", 1, "auditable"): records["account"],
    }


def stamped(persistence):
    return [c.args[0] for c in persistence.stamp.call_args_list]


class TestRegistration:
    """Test wiring with the persistence layer."""

    def test_subscribes_to_transaction_boundaries(self, graph):
        """Test the engine registers commit and rollback listeners."""
        persistence = make_persistence()
        engine = PropagationEngine(graph, persistence)

        persistence.on_outermost_commit.assert_called_once_with(engine.on_outermost_commit)
        persistence.on_rollback.assert_called_once_with(engine.on_rollback)

    def test_callable(self, graph, links, records):
        """Test the engine can be used directly as a write listener."""
        persistence = make_persistence(links)
        engine = PropagationEngine(graph, persistence)

        engine(records["provider"])
        assert stamped(persistence) == [records["account"]]


class TestImmediatePropagation:
    """Test propagation outside a transaction."""

    def test_write_stamps_dependents_not_source(self, graph, links, records):
        """Test the written record is not stamped again."""
        persistence = make_persistence(links)
        engine = PropagationEngine(graph, persistence)

        engine.on_write(records["datum"])

        assert stamped(persistence) == [records["account"]]

    def test_multi_level(self, graph, links, records):
        """Test PaymentGate -> Provider -> Account, depth first."""
        persistence = make_persistence(links)
        engine = PropagationEngine(graph, persistence)

        engine.on_write(records["gate"])

        assert stamped(persistence) == [records["provider"], records["account"]]

    def test_manual_invalidation_stamps_source(self, graph, links, records):
        """Test invalidate() stamps the entity itself first."""
        persistence = make_persistence(links)
        engine = PropagationEngine(graph, persistence)

        engine.invalidate(records["provider"])

        assert stamped(persistence) == [records["provider"], records["account"]]

    def test_missing_related_record(self, graph, records):
        """Test an absent association is skipped without error."""
        persistence = make_persistence({})
        engine = PropagationEngine(graph, persistence)

        engine.on_write(records["datum"])
        persistence.stamp.assert_not_called()

    def test_not_cascade_enabled(self, catalog, links, records):
        """Test writes to types outside every declaration are ignored."""
        graph = DependencyGraph(catalog)
        graph.declare("Accountant", ["account"])
        persistence = make_persistence(links)
        engine = PropagationEngine(graph, persistence)

        engine.on_write(records["provider"])
        persistence.resolve_relationship.assert_not_called()

    def test_polymorphic_type_filter(self, graph, records):
        """Test a polymorphic link to another type is not stamped."""
        provider = records["provider"]
        persistence = make_persistence({("Auditor", 1, "auditable"): provider})
        engine = PropagationEngine(graph, persistence)

        engine.on_write(records["auditor"])
        persistence.stamp.assert_not_called()

    def test_each_write_is_its_own_scope(self, graph, links, records):
        """Test two writes outside a transaction stamp twice."""
        persistence = make_persistence(links)
        engine = PropagationEngine(graph, persistence)

        engine.on_write(records["datum"])
        engine.on_write(records["accountant"])

        assert stamped(persistence) == [records["account"], records["account"]]

    def test_depth_first_sibling_order(self, graph, records):
        """Test a dependent's own dependents are stamped before its next sibling."""
        first, second = Record(type_name="Provider", pk=1), Record(type_name="Provider", pk=2)
        first_account, second_account = Record(type_name="Account", pk=1), Record(type_name="Account", pk=2)
        persistence = make_persistence({
            ("PaymentGate", 1, "providers"): [first, second],
            ("Provider", 1, "account"): first_account,
            ("Provider", 2, "account"): second_account,
        })
        engine = PropagationEngine(graph, persistence)

        engine.on_write(records["gate"])

        assert stamped(persistence) == [first, first_account, second, second_account]


class TestHooks:
    """Test hook firing."""

    def test_hooks_fire_for_source_and_dependents(self, graph, links, records):
        """Test hooks run for the written record and each stamped one."""
        persistence = make_persistence(links)
        hooks = HookRunner()
        fired = []
        hooks.register_after_invalidation("Provider", lambda e: fired.append(e.type_name))
        hooks.register_after_invalidation("Account", lambda e: fired.append(e.type_name))
        engine = PropagationEngine(graph, persistence, hooks=hooks)

        engine.on_write(records["gate"])

        assert fired == ["Provider", "Account"]

    def test_hook_runs_after_stamp(self, graph, links, records):
        """Test a handler sees its record already stamped."""
        persistence = make_persistence(links)
        hooks = HookRunner()
        hooks.register_after_invalidation(
            "Account", lambda e: persistence.hook_seen(persistence.stamp.call_count)
        )
        engine = PropagationEngine(graph, persistence, hooks=hooks)

        engine.on_write(records["provider"])

        persistence.hook_seen.assert_called_once_with(1)


class TestDeferral:
    """Test transaction-scoped deferral."""

    def test_write_deferred_until_commit(self, graph, links, records):
        """Test nothing is stamped before the outermost commit."""
        persistence = make_persistence(links, transaction_ids=("tx1",))
        engine = PropagationEngine(graph, persistence)

        engine.on_write(records["datum"])
        engine.on_write(records["accountant"])

        persistence.stamp.assert_not_called()
        assert [p.entity for p in engine.pending()] == [records["datum"], records["accountant"]]

        engine.on_outermost_commit(Mock(transaction_id="tx1"))

        assert stamped(persistence) == [records["account"]]
        assert engine.active_scope() is None

    def test_rollback_discards(self, graph, links, records):
        """Test an outermost rollback drops pending writes."""
        persistence = make_persistence(links, transaction_ids=("tx1",))
        engine = PropagationEngine(graph, persistence)

        engine.on_write(records["datum"])
        engine.on_rollback(Mock(transaction_id="tx1"), 1)
        engine.on_outermost_commit(Mock(transaction_id="tx1"))

        persistence.stamp.assert_not_called()

    def test_nested_rollback_discards_inner_writes_only(self, graph, links, records):
        """Test a nested rollback keeps the outer transaction's writes."""
        persistence = make_persistence(links, transaction_ids=("outer",))
        engine = PropagationEngine(graph, persistence)
        engine.on_write(records["datum"])

        persistence.active_transaction_ids.return_value = ["outer", "inner"]
        engine.on_write(records["gate"])
        persistence.active_transaction_ids.return_value = ["outer"]
        engine.on_rollback(Mock(transaction_id="inner"), 2)

        assert [p.entity for p in engine.pending()] == [records["datum"]]

        engine.on_outermost_commit(Mock(transaction_id="outer"))
        assert stamped(persistence) == [records["account"]]

    def test_immediate_mode_dedups_within_transaction(self, graph, links, records):
        """Test defer_until_commit=False still stamps once per transaction."""
        persistence = make_persistence(links, transaction_ids=("tx1",))
        engine = PropagationEngine(graph, persistence, defer_until_commit=False)

        engine.on_write(records["datum"])
        engine.on_write(records["accountant"])

        assert stamped(persistence) == [records["account"]]

    def test_immediate_mode_nested_rollback_releases_stamps(self, graph, links, records):
        """Test stamps made inside a rolled-back nested transaction are redone."""
        persistence = make_persistence(links, transaction_ids=("outer", "inner"))
        engine = PropagationEngine(graph, persistence, defer_until_commit=False)

        engine.on_write(records["datum"])
        persistence.active_transaction_ids.return_value = ["outer"]
        engine.on_rollback(Mock(transaction_id="inner"), 2)
        engine.on_write(records["accountant"])

        assert stamped(persistence) == [records["account"], records["account"]]

    def test_immediate_mode_nested_rollback_keeps_outer_stamps(self, graph, links, records):
        """Test stamps made before the nested transaction stay deduplicated."""
        persistence = make_persistence(links, transaction_ids=("outer",))
        engine = PropagationEngine(graph, persistence, defer_until_commit=False)

        engine.on_write(records["datum"])
        persistence.active_transaction_ids.return_value = ["outer", "inner"]
        engine.on_write(records["accountant"])
        persistence.active_transaction_ids.return_value = ["outer"]
        engine.on_rollback(Mock(transaction_id="inner"), 2)
        engine.on_write(records["auditor"])

        assert stamped(persistence) == [records["account"]]

    def test_commit_of_unknown_transaction(self, graph):
        """Test a commit with nothing pending is a no-op."""
        persistence = make_persistence()
        engine = PropagationEngine(graph, persistence)

        engine.on_outermost_commit(Mock(transaction_id="other"))
        persistence.stamp.assert_not_called()
        assert engine.pending() == []


class TestLogging:
    """Test the audit trail written during propagation."""

    def test_log_entries(self, graph, links, records):
        """Test source, stamp and skip entries."""
        persistence = make_persistence(links)
        log = InvalidationLog()
        engine = PropagationEngine(graph, persistence, log=log)

        engine.on_write(records["provider"])

        kinds = [e.kind for e in log.entries()]
        assert kinds == [LogEntryKind.SOURCE, LogEntryKind.STAMPED]
        stamp = log.by_kind(LogEntryKind.STAMPED)[0]
        assert stamp.caused_by == "Provider#1"
        assert stamp.relationship == "account"

    def test_deferred_and_flushed(self, graph, links, records):
        """Test deferral and flush are logged against the transaction."""
        persistence = make_persistence(links, transaction_ids=("tx1",))
        log = InvalidationLog()
        engine = PropagationEngine(graph, persistence, log=log)

        engine.on_write(records["datum"])
        engine.on_write(records["datum"])
        engine.on_outermost_commit(Mock(transaction_id="tx1"))

        assert len(log.by_kind(LogEntryKind.DEFERRED)) == 1
        assert log.by_kind(LogEntryKind.FLUSHED)[0].metadata == {"sources": 1}
        assert all(e.transaction_id == "tx1" for e in log.entries())

    def test_discarded(self, graph, links, records):
        """Test a rollback that drops writes is logged."""
        persistence = make_persistence(links, transaction_ids=("tx1",))
        log = InvalidationLog()
        engine = PropagationEngine(graph, persistence, log=log)

        engine.on_write(records["datum"])
        engine.on_rollback(Mock(transaction_id="tx1"), 1)

        assert log.by_kind(LogEntryKind.DISCARDED)[0].metadata == {"sources": 1}


class TestManualInvalidationInTransaction:
    """Test invalidate() inside a transaction."""

    def test_manual_invalidation_deferred(self, graph, links, records):
        """Test the stamp of a manually invalidated record waits for commit."""
        persistence = make_persistence(links, transaction_ids=("tx1",))
        engine = PropagationEngine(graph, persistence)

        engine.invalidate(records["provider"])
        persistence.stamp.assert_not_called()

        engine.on_outermost_commit(Mock(transaction_id="tx1"))
        assert persistence.stamp.call_args_list == [call(records["provider"]), call(records["account"])]
