"""
appagent.infrastructure.pattern_store - Pattern Learning Memory
=================================================================

The Pattern Store records which configurations succeeded or failed,
grouped by resource/workflow type. It is the memory the Recommendation
Engine learns from.

Architecture:

    ┌────────────────────────┐  record_success / record_failure  ┌──────────────────┐
    │  WorkflowOrchestrator  │ ────────────────────────────────→ │                  │
    └────────────────────────┘                                   │   PatternStore   │
    ┌────────────────────────┐        successes_for(type)        │                  │
    │  RecommendationEngine  │ ←──────────────────────────────── │                  │
    └────────────────────────┘                                   └──────────────────┘

Invariants:
    - Per type, records are kept in append order (oldest first).
    - Records are never merged, deduplicated, mutated or deleted.
    - Unknown types read as an empty list, never None.

Key Schema (generic key/value escape hatch):
    lessons-{type}  → lessons learned from failed workflows of that type
    (anything else) → opaque session-scoped artifacts

Implementations:
    - PatternStore (ABC):    Abstract interface
    - InMemoryPatternStore:  Dict-based, lives as long as the process
    - JsonlPatternStore:     Append-only JSON-lines log, replayed on connect
"""

from __future__ import annotations

import copy
import json
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from pathlib import Path
from typing import Any, Optional, Union

from appagent.core.exceptions import StateError
from appagent.core.models import FailureRecord, SuccessRecord, config_as_dict

logger = logging.getLogger(__name__)


LESSONS_KEY_PREFIX = "lessons-"


def lessons_key(resource_type: str) -> str:
    """Storage key under which lessons for a pattern type are kept."""
    return f"{LESSONS_KEY_PREFIX}{resource_type}"


# =============================================================================
# Abstract Base Class: PatternStore
# =============================================================================
class PatternStore(ABC):
    """Abstract base class for pattern persistence.

    Subclasses implement the storage primitives; the convenience methods
    (store_pattern, retrieve_patterns, lessons) are built on top of them.

    Example:
        >>> async def learn(store: PatternStore) -> None:
        ...     await store.record_success("deployment", {"replicas": 3})
        ...     records = await store.successes_for("deployment")
    """

    # -------------------------------------------------------------------------
    # Connection Lifecycle
    # -------------------------------------------------------------------------
    @abstractmethod
    async def connect(self) -> None:
        """Prepare the backing storage (load persisted records, if any)."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the backing storage."""

    # -------------------------------------------------------------------------
    # Pattern Records
    # -------------------------------------------------------------------------
    @abstractmethod
    async def record_success(self, resource_type: str, config: Any) -> SuccessRecord:
        """Append a SuccessRecord stamped with the current time.

        Args:
            resource_type: Pattern collection, e.g. "deployment".
            config: Mapping or pydantic model that succeeded.

        Returns:
            The appended record.
        """

    @abstractmethod
    async def record_failure(
        self,
        resource_type: str,
        config: Any,
        error_description: str,
    ) -> FailureRecord:
        """Append a FailureRecord stamped with the current time.

        Args:
            resource_type: Pattern collection, e.g. "deployment".
            config: Configuration at the time of failure.
            error_description: Why it failed.

        Returns:
            The appended record.
        """

    @abstractmethod
    async def successes_for(self, resource_type: str) -> list[SuccessRecord]:
        """Copies of the success records of a type, oldest first ([] if unknown)."""

    @abstractmethod
    async def failures_for(self, resource_type: str) -> list[FailureRecord]:
        """Copies of the failure records of a type, oldest first ([] if unknown)."""

    @abstractmethod
    async def pattern_types(self) -> list[str]:
        """Every type that has at least one success or failure record."""

    # -------------------------------------------------------------------------
    # Generic Key/Value
    # -------------------------------------------------------------------------
    @abstractmethod
    async def store(self, key: str, value: Any) -> None:
        """Store an opaque value under a key (last write wins)."""

    @abstractmethod
    async def retrieve(self, key: str) -> Optional[Any]:
        """Return the value stored under key, or None when absent."""

    # -------------------------------------------------------------------------
    # Convenience Operations
    # -------------------------------------------------------------------------
    async def store_pattern(self, resource_type: str, config: Any) -> SuccessRecord:
        """Store a pattern; patterns stored directly count as successes."""
        return await self.record_success(resource_type, config)

    async def retrieve_patterns(self, resource_type: str) -> list[dict[str, Any]]:
        """Configurations of all successful patterns of a type."""
        return [copy.deepcopy(record.config) for record in await self.successes_for(resource_type)]

    async def store_lessons(self, resource_type: str, lessons: Any) -> None:
        """Replace the lessons learned for a type."""
        await self.store(lessons_key(resource_type), lessons)

    async def get_lessons(self, resource_type: str) -> list[Any]:
        """Lessons learned for a type ([] when none were stored)."""
        lessons = await self.retrieve(lessons_key(resource_type))
        if lessons is None:
            return []
        if isinstance(lessons, list):
            return list(lessons)
        return [lessons]

    async def append_lesson(self, resource_type: str, lesson: Any) -> None:
        """Add one lesson to the lessons kept for a type."""
        lessons = await self.get_lessons(resource_type)
        lessons.append(lesson)
        await self.store_lessons(resource_type, lessons)


# =============================================================================
# InMemoryPatternStore Implementation
# =============================================================================
# Key Data Structures:
#   _successes: dict[type, list[SuccessRecord]]   (append-only)
#   _failures:  dict[type, list[FailureRecord]]   (append-only)
#   _storage:   dict[key, value]
# =============================================================================
class InMemoryPatternStore(PatternStore):
    """Dict-based pattern store. Records live for the process lifetime.

    Collections grow without bound; long-lived deployments should plan
    capacity or persist through JsonlPatternStore.

    Example:
        >>> store = InMemoryPatternStore()
        >>> await store.connect()
        >>> await store.record_success("web", {"framework": "express"})
        >>> len(await store.successes_for("web"))
        1
    """

    def __init__(self) -> None:
        self._successes: dict[str, list[SuccessRecord]] = defaultdict(list)
        self._failures: dict[str, list[FailureRecord]] = defaultdict(list)
        self._storage: dict[str, Any] = {}
        self._connected: bool = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    # -------------------------------------------------------------------------
    # Connection Lifecycle
    # -------------------------------------------------------------------------
    async def connect(self) -> None:
        """Mark the store as connected."""
        self._connected = True
        logger.info("%s connected", self.__class__.__name__)

    async def disconnect(self) -> None:
        """Mark the store as disconnected. Records are kept."""
        self._connected = False
        logger.info("%s disconnected", self.__class__.__name__)

    # -------------------------------------------------------------------------
    # Pattern Records
    # -------------------------------------------------------------------------
    async def record_success(self, resource_type: str, config: Any) -> SuccessRecord:
        record = SuccessRecord(resource_type=resource_type, config=config_as_dict(config))
        self._append_success(record)
        logger.debug(
            "Recorded success pattern: %s (%d total)",
            resource_type,
            len(self._successes[resource_type]),
        )
        return record

    async def record_failure(
        self,
        resource_type: str,
        config: Any,
        error_description: str,
    ) -> FailureRecord:
        record = FailureRecord(
            resource_type=resource_type,
            config=config_as_dict(config),
            error_description=error_description,
        )
        self._append_failure(record)
        logger.debug(
            "Recorded failure pattern: %s (%s)", resource_type, error_description
        )
        return record

    async def successes_for(self, resource_type: str) -> list[SuccessRecord]:
        return [r.model_copy(deep=True) for r in self._successes.get(resource_type, [])]

    async def failures_for(self, resource_type: str) -> list[FailureRecord]:
        return [r.model_copy(deep=True) for r in self._failures.get(resource_type, [])]

    async def pattern_types(self) -> list[str]:
        types = {t for t, records in self._successes.items() if records}
        types.update(t for t, records in self._failures.items() if records)
        return sorted(types)

    # -------------------------------------------------------------------------
    # Generic Key/Value
    # -------------------------------------------------------------------------
    async def store(self, key: str, value: Any) -> None:
        self._storage[key] = value
        logger.debug("Stored value under key: %s", key)

    async def retrieve(self, key: str) -> Optional[Any]:
        return self._storage.get(key)

    # -------------------------------------------------------------------------
    # Internal Helpers
    # -------------------------------------------------------------------------
    def _append_success(self, record: SuccessRecord) -> None:
        self._successes[record.resource_type].append(record)

    def _append_failure(self, record: FailureRecord) -> None:
        self._failures[record.resource_type].append(record)


# =============================================================================
# JsonlPatternStore Implementation
# =============================================================================
# Every write is appended to a JSON-lines log before it becomes visible in
# memory. connect() replays the log, so records survive restarts while the
# read path stays identical to the in-memory store.
#
# Line format:
#   {"entry": "success", "record": {...SuccessRecord...}}
#   {"entry": "failure", "record": {...FailureRecord...}}
#   {"entry": "value",   "key": "...", "value": ...}
# =============================================================================
class JsonlPatternStore(InMemoryPatternStore):
    """Pattern store backed by an append-only JSON-lines file.

    Attributes:
        path: Location of the log file. Parent directories are created.

    Example:
        >>> store = JsonlPatternStore("~/.app-agent/patterns.jsonl")
        >>> await store.connect()   # replays existing records
    """

    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__()
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    async def connect(self) -> None:
        """Replay the log into memory, then mark the store connected."""
        self._successes.clear()
        self._failures.clear()
        self._storage.clear()

        if self._path.exists():
            replayed = 0
            with open(self._path, encoding="utf-8") as f:
                for line_number, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        self._replay(json.loads(line))
                    except (ValueError, KeyError) as e:
                        raise StateError(
                            message=f"Corrupt pattern log line {line_number} in {self._path}: {e}",
                            error_code="PATTERN_LOG_CORRUPT",
                            details={"path": str(self._path), "line": line_number},
                        ) from e
                    replayed += 1
            logger.info("Replayed %d pattern log entries from %s", replayed, self._path)

        await super().connect()

    async def record_success(self, resource_type: str, config: Any) -> SuccessRecord:
        record = SuccessRecord(resource_type=resource_type, config=config_as_dict(config))
        self._write({"entry": "success", "record": record.model_dump(mode="json")})
        self._append_success(record)
        return record

    async def record_failure(
        self,
        resource_type: str,
        config: Any,
        error_description: str,
    ) -> FailureRecord:
        record = FailureRecord(
            resource_type=resource_type,
            config=config_as_dict(config),
            error_description=error_description,
        )
        self._write({"entry": "failure", "record": record.model_dump(mode="json")})
        self._append_failure(record)
        return record

    async def store(self, key: str, value: Any) -> None:
        self._write({"entry": "value", "key": key, "value": value})
        self._storage[key] = value

    def _write(self, entry: dict[str, Any]) -> None:
        """Append one entry to the log."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            raise StateError(
                message=f"Failed to append to pattern log {self._path}: {e}",
                error_code="PATTERN_WRITE_FAILED",
                details={"path": str(self._path)},
            ) from e

    def _replay(self, entry: dict[str, Any]) -> None:
        kind = entry["entry"]
        if kind == "success":
            self._append_success(SuccessRecord.model_validate(entry["record"]))
        elif kind == "failure":
            self._append_failure(FailureRecord.model_validate(entry["record"]))
        elif kind == "value":
            self._storage[entry["key"]] = entry["value"]
        else:
            raise ValueError(f"unknown entry type {kind!r}")
