"""
Tests for appagent.infrastructure.context_store
=================================================

These tests verify the per-session scratch space:
    - Last write wins, clearing unknown keys is a no-op
    - Snapshots are read-only and detached from later writes
    - The registry isolates sessions and can rehydrate a store
"""

import pytest

from appagent.infrastructure.context_store import ContextRegistry, ContextStore


# =============================================================================
# Test: ContextStore
# =============================================================================
class TestContextStore:
    """Tests for a single session's ContextStore."""

    def test_set_and_snapshot(self) -> None:
        ctx = ContextStore("wf-1")
        ctx.set("database", "PostgreSQL")
        assert ctx.snapshot()["database"] == "PostgreSQL"

    def test_last_write_wins(self) -> None:
        ctx = ContextStore("wf-1")
        ctx.set("replicas", 2)
        ctx.set("replicas", 3)
        assert ctx.snapshot() == {"replicas": 3}

    def test_update_merges(self) -> None:
        ctx = ContextStore("wf-1", {"a": 1})
        ctx.update({"b": 2, "a": 10})
        assert dict(ctx.snapshot()) == {"a": 10, "b": 2}

    def test_snapshot_is_read_only(self) -> None:
        snapshot = ContextStore("wf-1", {"a": 1}).snapshot()
        with pytest.raises(TypeError):
            snapshot["a"] = 2  # type: ignore[index]

    def test_snapshot_is_detached(self) -> None:
        ctx = ContextStore("wf-1", {"a": 1})
        snapshot = ctx.snapshot()
        ctx.set("b", 2)
        assert "b" not in snapshot

    def test_clear_single_key(self) -> None:
        ctx = ContextStore("wf-1", {"a": 1, "b": 2})
        ctx.clear("a")
        assert dict(ctx.snapshot()) == {"b": 2}

    def test_clear_unknown_key_is_noop(self) -> None:
        ctx = ContextStore("wf-1", {"a": 1})
        ctx.clear("missing")
        assert len(ctx) == 1

    def test_clear_everything(self) -> None:
        ctx = ContextStore("wf-1", {"a": 1, "b": 2})
        ctx.clear()
        assert len(ctx) == 0
        assert "a" not in ctx


# =============================================================================
# Test: ContextRegistry
# =============================================================================
class TestContextRegistry:
    """Tests for the per-session registry."""

    def test_scope_is_created_once(self, context_registry) -> None:
        first = context_registry.scope("wf-1")
        assert context_registry.scope("wf-1") is first
        assert context_registry.has_scope("wf-1")

    def test_sessions_are_isolated(self, context_registry) -> None:
        context_registry.scope("wf-1").set("a", 1)
        assert dict(context_registry.scope("wf-2").snapshot()) == {}

    def test_restore_rehydrates(self, context_registry) -> None:
        store = context_registry.restore("wf-1", {"database": "MySQL"})
        assert context_registry.scope("wf-1") is store
        assert store.snapshot()["database"] == "MySQL"

    def test_drop_forgets_scope(self, context_registry) -> None:
        context_registry.scope("wf-1").set("a", 1)
        context_registry.drop("wf-1")
        assert not context_registry.has_scope("wf-1")
        assert len(context_registry) == 0

    def test_registries_do_not_share_state(self) -> None:
        ContextRegistry().scope("wf-1").set("a", 1)
        assert not ContextRegistry().has_scope("wf-1")
