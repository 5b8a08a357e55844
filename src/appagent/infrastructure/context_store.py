"""
appagent.infrastructure.context_store - Session Context Scratch Space
=======================================================================

A Context Store is a mutable key/value mapping scoped to one workflow
session. It carries conversational state across suspend/resume
boundaries, most importantly the user's answers to interactive questions.

    continue_workflow(id, {"database": "PostgreSQL"})
            │
            ▼
    ContextRegistry.scope(id).update(...)  ──→  snapshot() handed to the
                                                 model provider on resume

Stores are plain injected objects. The registry belongs to one
orchestrator, so independent orchestrators (e.g. in tests) never share
context.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Optional

import structlog


logger = structlog.get_logger()


class ContextStore:
    """Key/value scratch space for one session.

    No operation fails: overwrites are last-write-wins and clearing an
    unknown key is a no-op.

    Example:
        >>> ctx = ContextStore("wf-123")
        >>> ctx.set("database", "PostgreSQL")
        >>> ctx.snapshot()["database"]
        'PostgreSQL'
        >>> ctx.clear()
        >>> dict(ctx.snapshot())
        {}
    """

    def __init__(self, scope_id: str, initial: Optional[Mapping[str, Any]] = None) -> None:
        self._scope_id = scope_id
        self._entries: dict[str, Any] = dict(initial or {})

    @property
    def scope_id(self) -> str:
        return self._scope_id

    def set(self, key: str, value: Any) -> None:
        """Create or overwrite one entry."""
        self._entries[key] = value

    def update(self, values: Mapping[str, Any]) -> None:
        """Merge several entries at once."""
        self._entries.update(values)

    def snapshot(self) -> Mapping[str, Any]:
        """Read-only copy of all entries.

        Later writes to the store do not show up in a snapshot that was
        already taken.
        """
        return MappingProxyType(dict(self._entries))

    def clear(self, key: Optional[str] = None) -> None:
        """Clear one key, or every entry when key is omitted."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __repr__(self) -> str:
        return f"ContextStore(scope_id={self._scope_id!r}, keys={sorted(self._entries)!r})"


class ContextRegistry:
    """Owns one ContextStore per session id.

    Example:
        >>> registry = ContextRegistry()
        >>> registry.scope("wf-1").set("a", 1)
        >>> registry.scope("wf-2").snapshot()
        mappingproxy({})
    """

    def __init__(self) -> None:
        self._scopes: dict[str, ContextStore] = {}
        self._logger = logger.bind(component="context_registry")

    def scope(self, scope_id: str) -> ContextStore:
        """Context store for a session, created empty on first use."""
        store = self._scopes.get(scope_id)
        if store is None:
            store = ContextStore(scope_id)
            self._scopes[scope_id] = store
        return store

    def has_scope(self, scope_id: str) -> bool:
        return scope_id in self._scopes

    def restore(self, scope_id: str, entries: Mapping[str, Any]) -> ContextStore:
        """Recreate a session's store from a persisted snapshot.

        Used when a session is resumed by a worker that never held its
        context in memory.
        """
        store = ContextStore(scope_id, entries)
        self._scopes[scope_id] = store
        self._logger.debug("context_restored", scope_id=scope_id, keys=len(store))
        return store

    def drop(self, scope_id: str) -> None:
        """Forget a session's store entirely."""
        self._scopes.pop(scope_id, None)

    def __len__(self) -> int:
        return len(self._scopes)
