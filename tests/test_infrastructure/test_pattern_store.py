"""
Tests for appagent.infrastructure.pattern_store
=================================================

These tests verify both PatternStore implementations:
    - Append-only, per-type, oldest-first record lists
    - Copies returned to callers cannot mutate stored history
    - Opaque key/value storage (missing key → None)
    - Lessons helpers kept under "lessons-{type}"
    - JsonlPatternStore: records survive a reconnect, corrupt logs fail loudly

All tests are async (pytest-asyncio with asyncio_mode=auto).
"""

import json
from pathlib import Path

import pytest

from appagent.core.exceptions import StateError
from appagent.infrastructure.pattern_store import (
    InMemoryPatternStore,
    JsonlPatternStore,
    PatternStore,
    lessons_key,
)


# =============================================================================
# Test: Interface Compliance
# =============================================================================
class TestPatternStoreInterface:
    """Both implementations satisfy the abstract contract."""

    def test_in_memory_is_pattern_store(self) -> None:
        assert isinstance(InMemoryPatternStore(), PatternStore)

    def test_jsonl_is_pattern_store(self, tmp_path: Path) -> None:
        assert isinstance(JsonlPatternStore(tmp_path / "p.jsonl"), PatternStore)

    async def test_connect_disconnect(self) -> None:
        store = InMemoryPatternStore()
        await store.connect()
        assert store.is_connected is True
        await store.disconnect()
        assert store.is_connected is False


# =============================================================================
# Test: Pattern Records
# =============================================================================
class TestPatternRecords:
    """Tests for record_success / record_failure and their queries."""

    async def test_success_is_appended_and_returned(self, pattern_store) -> None:
        record = await pattern_store.record_success("web", {"framework": "express"})

        successes = await pattern_store.successes_for("web")
        assert successes == [record]
        assert record.config == {"framework": "express"}

    async def test_records_keep_append_order(self, pattern_store) -> None:
        for replicas in (1, 2, 3):
            await pattern_store.record_success("web", {"replicas": replicas})

        configs = [r.config["replicas"] for r in await pattern_store.successes_for("web")]
        assert configs == [1, 2, 3]

    async def test_identical_configs_are_not_deduplicated(self, pattern_store) -> None:
        await pattern_store.record_success("web", {"a": 1})
        await pattern_store.record_success("web", {"a": 1})
        assert len(await pattern_store.successes_for("web")) == 2

    async def test_failure_keeps_description(self, pattern_store) -> None:
        await pattern_store.record_failure("web", {"a": 1}, "image pull failed")

        failures = await pattern_store.failures_for("web")
        assert [f.error_description for f in failures] == ["image pull failed"]
        assert await pattern_store.successes_for("web") == []

    async def test_types_are_isolated(self, pattern_store) -> None:
        await pattern_store.record_success("web", {"a": 1})
        assert await pattern_store.successes_for("database") == []

    async def test_unknown_type_is_empty(self, pattern_store) -> None:
        assert await pattern_store.successes_for("never-seen") == []
        assert await pattern_store.failures_for("never-seen") == []

    async def test_returned_list_is_a_copy(self, pattern_store) -> None:
        await pattern_store.record_success("web", {"a": 1})
        (await pattern_store.successes_for("web")).clear()
        assert len(await pattern_store.successes_for("web")) == 1

    async def test_stored_config_is_decoupled_from_caller(self, pattern_store) -> None:
        config = {"a": 1}
        await pattern_store.record_success("web", config)
        config["b"] = 2
        assert (await pattern_store.successes_for("web"))[0].config == {"a": 1}

    async def test_nested_config_is_decoupled_from_caller(self, pattern_store) -> None:
        config = {"manifest": {"replicas": 1}}
        await pattern_store.record_success("deployment", config)
        await pattern_store.record_failure("deployment", config, "oom")
        config["manifest"]["replicas"] = 99

        assert (await pattern_store.successes_for("deployment"))[0].config == {
            "manifest": {"replicas": 1}
        }
        assert (await pattern_store.failures_for("deployment"))[0].config == {
            "manifest": {"replicas": 1}
        }

    async def test_returned_records_cannot_rewrite_history(self, pattern_store) -> None:
        await pattern_store.record_success("deployment", {"manifest": {"replicas": 1}})

        (await pattern_store.successes_for("deployment"))[0].config["manifest"]["replicas"] = 99

        assert (await pattern_store.successes_for("deployment"))[0].config == {
            "manifest": {"replicas": 1}
        }

    async def test_retrieved_patterns_are_copies(self, pattern_store) -> None:
        await pattern_store.record_success("deployment", {"a": 1})

        (await pattern_store.retrieve_patterns("deployment"))[0]["injected"] = True

        assert await pattern_store.retrieve_patterns("deployment") == [{"a": 1}]

    async def test_pattern_types(self, pattern_store) -> None:
        await pattern_store.record_success("web", {})
        await pattern_store.record_failure("batch", {}, "oom")
        assert await pattern_store.pattern_types() == ["batch", "web"]


# =============================================================================
# Test: Key/Value, Patterns and Lessons
# =============================================================================
class TestKeyValueAndLessons:
    """Tests for store/retrieve and the helpers built on them."""

    async def test_retrieve_missing_key_is_none(self, pattern_store) -> None:
        assert await pattern_store.retrieve("nothing-here") is None

    async def test_store_overwrites(self, pattern_store) -> None:
        await pattern_store.store("k", 1)
        await pattern_store.store("k", {"v": 2})
        assert await pattern_store.retrieve("k") == {"v": 2}

    async def test_store_pattern_counts_as_success(self, pattern_store) -> None:
        await pattern_store.store_pattern("web", {"framework": "flask"})
        assert await pattern_store.retrieve_patterns("web") == [{"framework": "flask"}]

    async def test_lessons_key_format(self) -> None:
        assert lessons_key("deployment") == "lessons-deployment"

    async def test_lessons_round_trip(self, pattern_store) -> None:
        assert await pattern_store.get_lessons("web") == []

        await pattern_store.store_lessons("web", ["pin image tags"])
        await pattern_store.append_lesson("web", "set resource limits")

        assert await pattern_store.get_lessons("web") == [
            "pin image tags",
            "set resource limits",
        ]
        assert await pattern_store.retrieve("lessons-web") == [
            "pin image tags",
            "set resource limits",
        ]

    async def test_single_lesson_value_is_wrapped(self, pattern_store) -> None:
        await pattern_store.store("lessons-web", "one lesson")
        assert await pattern_store.get_lessons("web") == ["one lesson"]


# =============================================================================
# Test: JsonlPatternStore
# =============================================================================
class TestJsonlPatternStore:
    """Tests for the append-only file-backed store."""

    async def test_records_survive_reconnect(self, tmp_path: Path) -> None:
        path = tmp_path / "state" / "patterns.jsonl"
        store = JsonlPatternStore(path)
        await store.connect()
        await store.record_success("web", {"replicas": 1})
        await store.record_failure("web", {"replicas": 2}, "crash loop")
        await store.record_success("web", {"replicas": 3})
        await store.append_lesson("web", {"error": "crash loop"})
        await store.disconnect()

        reopened = JsonlPatternStore(path)
        await reopened.connect()

        successes = await reopened.successes_for("web")
        assert [s.config["replicas"] for s in successes] == [1, 3]
        failures = await reopened.failures_for("web")
        assert failures[0].error_description == "crash loop"
        assert await reopened.get_lessons("web") == [{"error": "crash loop"}]
        assert successes[0].recorded_at.tzinfo is not None

    async def test_log_is_append_only_json_lines(self, tmp_path: Path) -> None:
        path = tmp_path / "patterns.jsonl"
        store = JsonlPatternStore(path)
        await store.connect()
        await store.record_success("web", {"a": 1})
        await store.store("k", "v")

        lines = [json.loads(line) for line in path.read_text().splitlines()]
        assert [line["entry"] for line in lines] == ["success", "value"]
        assert lines[0]["record"]["resource_type"] == "web"

    async def test_connect_without_file_starts_empty(self, tmp_path: Path) -> None:
        store = JsonlPatternStore(tmp_path / "missing.jsonl")
        await store.connect()
        assert await store.pattern_types() == []

    async def test_corrupt_line_raises_state_error(self, tmp_path: Path) -> None:
        path = tmp_path / "patterns.jsonl"
        path.write_text('{"entry": "success", "record": {}}\nnot json\n')

        with pytest.raises(StateError) as exc_info:
            await JsonlPatternStore(path).connect()
        assert exc_info.value.error_code == "PATTERN_LOG_CORRUPT"

    async def test_unwritable_log_raises_state_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file in the way")
        store = JsonlPatternStore(blocker / "patterns.jsonl")

        with pytest.raises(StateError) as exc_info:
            await store.record_success("web", {})
        assert exc_info.value.error_code == "PATTERN_WRITE_FAILED"
        assert await store.successes_for("web") == []
