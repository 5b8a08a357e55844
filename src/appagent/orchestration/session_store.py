"""
appagent.orchestration.session_store - Workflow Session Persistence
=====================================================================

The Session Store keeps WorkflowSession snapshots for the orchestrator.
Suspended sessions wait here until continue_workflow() picks them up,
possibly from a different worker when the file-backed store is used.

Architecture:

    ┌──────────────────────┐    save/get     ┌──────────────────┐
    │ WorkflowOrchestrator │ ─────────────→  │                  │
    │                      │                 │   SessionStore   │
    │                      │ ←─────────────  │                  │
    └──────────────────────┘ WorkflowSession └──────────────────┘

Key Schema:
    session:{workflow_id} → WorkflowSession (JSON)

    FileSessionStore maps each key to {state_dir}/sessions/{workflow_id}.json.

Implementations:
    - SessionStore (ABC):    Abstract interface
    - InMemorySessionStore:  Dict-based for dev/testing
    - FileSessionStore:      One JSON document per session
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from appagent.core.exceptions import StateError
from appagent.core.state import WorkflowSession

logger = logging.getLogger(__name__)


def _is_valid_id(workflow_id: str) -> bool:
    """Ids are UUIDs; anything that could escape the directory is refused."""
    if not workflow_id or workflow_id.startswith("."):
        return False
    return "/" not in workflow_id and "\\" not in workflow_id


# =============================================================================
# Abstract Base Class: SessionStore
# =============================================================================
class SessionStore(ABC):
    """Abstract base class for session persistence.

    Example:
        >>> async def checkpoint(store: SessionStore, session: WorkflowSession):
        ...     await store.save_session(session)
        ...     again = await store.get_session(session.workflow_id)
    """

    @abstractmethod
    async def connect(self) -> None:
        """Prepare the backing storage.

        Raises:
            StateError: If the storage cannot be prepared.
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the backing storage."""

    @abstractmethod
    async def save_session(self, session: WorkflowSession) -> None:
        """Save or replace a session snapshot (last write wins).

        Raises:
            StateError: If the write fails.
        """

    @abstractmethod
    async def get_session(self, workflow_id: str) -> Optional[WorkflowSession]:
        """Return the stored session, or None if there is none."""

    @abstractmethod
    async def delete_session(self, workflow_id: str) -> bool:
        """Delete a session. Returns False when it did not exist."""

    @abstractmethod
    async def list_sessions(self) -> list[WorkflowSession]:
        """All stored sessions, oldest first."""


# =============================================================================
# InMemorySessionStore Implementation
# =============================================================================
class InMemorySessionStore(SessionStore):
    """In-memory session store. Sessions are lost when the process ends.

    Example:
        >>> store = InMemorySessionStore()
        >>> await store.connect()
        >>> await store.save_session(session)
    """

    def __init__(self) -> None:
        self._sessions: dict[str, WorkflowSession] = {}
        self._connected: bool = False

    async def connect(self) -> None:
        self._connected = True
        logger.info("InMemorySessionStore connected")

    async def disconnect(self) -> None:
        self._connected = False
        logger.info("InMemorySessionStore disconnected")

    async def save_session(self, session: WorkflowSession) -> None:
        self._sessions[session.workflow_id] = session
        logger.debug(
            "Saved session: %s (phase=%s, version=%d)",
            session.workflow_id,
            session.current_phase.value,
            session.version,
        )

    async def get_session(self, workflow_id: str) -> Optional[WorkflowSession]:
        return self._sessions.get(workflow_id)

    async def delete_session(self, workflow_id: str) -> bool:
        if workflow_id in self._sessions:
            del self._sessions[workflow_id]
            logger.debug("Deleted session: %s", workflow_id)
            return True
        return False

    async def list_sessions(self) -> list[WorkflowSession]:
        return sorted(self._sessions.values(), key=lambda s: s.created_at)


# =============================================================================
# FileSessionStore Implementation
# =============================================================================
# Each session is one JSON document. Writes go to a temporary file that is
# renamed over the target, so a reader never sees a half-written session.
# =============================================================================
class FileSessionStore(SessionStore):
    """Session store that keeps one JSON file per session.

    Attributes:
        directory: Folder holding the session documents.

    Example:
        >>> store = FileSessionStore("~/.app-agent/sessions")
        >>> await store.connect()
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self._directory = Path(directory).expanduser()
        self._connected: bool = False

    @property
    def directory(self) -> Path:
        return self._directory

    async def connect(self) -> None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StateError(
                message=f"Cannot create session directory {self._directory}: {e}",
                error_code="SESSION_STORE_UNAVAILABLE",
                details={"path": str(self._directory)},
            ) from e
        self._connected = True
        logger.info("FileSessionStore connected (%s)", self._directory)

    async def disconnect(self) -> None:
        self._connected = False
        logger.info("FileSessionStore disconnected")

    async def save_session(self, session: WorkflowSession) -> None:
        target = self._path_for(session.workflow_id)
        temporary = target.with_suffix(".json.tmp")
        try:
            temporary.write_text(session.model_dump_json(indent=2), encoding="utf-8")
            temporary.replace(target)
        except OSError as e:
            raise StateError(
                message=f"Failed to write session {session.workflow_id}: {e}",
                error_code="SESSION_WRITE_FAILED",
                details={"workflow_id": session.workflow_id, "path": str(target)},
            ) from e
        logger.debug(
            "Saved session: %s (phase=%s, version=%d)",
            session.workflow_id,
            session.current_phase.value,
            session.version,
        )

    async def get_session(self, workflow_id: str) -> Optional[WorkflowSession]:
        if not _is_valid_id(workflow_id):
            return None
        path = self._path_for(workflow_id)
        if not path.exists():
            return None
        return self._load(path)

    async def delete_session(self, workflow_id: str) -> bool:
        if not _is_valid_id(workflow_id):
            return False
        path = self._path_for(workflow_id)
        if not path.exists():
            return False
        path.unlink()
        logger.debug("Deleted session: %s", workflow_id)
        return True

    async def list_sessions(self) -> list[WorkflowSession]:
        if not self._directory.exists():
            return []
        sessions = [self._load(path) for path in self._directory.glob("*.json")]
        return sorted(sessions, key=lambda s: s.created_at)

    def _path_for(self, workflow_id: str) -> Path:
        if not _is_valid_id(workflow_id):
            raise StateError(
                message=f"Invalid workflow id: {workflow_id!r}",
                error_code="INVALID_SESSION_ID",
            )
        return self._directory / f"{workflow_id}.json"

    @staticmethod
    def _load(path: Path) -> WorkflowSession:
        try:
            return WorkflowSession.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise StateError(
                message=f"Failed to read session file {path}: {e}",
                error_code="SESSION_READ_FAILED",
                details={"path": str(path)},
            ) from e
