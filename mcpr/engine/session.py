"""Состояние MCP-сессии и хранилище сессий HTTP-транспорта."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class SessionPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    CLOSED = "closed"


class SessionState(BaseModel):
    """Минимальное состояние сессии: фаза и то, что клиент прислал в initialize."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    phase: SessionPhase = SessionPhase.UNINITIALIZED
    client_info: Dict[str, Any] = Field(default_factory=dict)
    client_capabilities: Dict[str, Any] = Field(default_factory=dict)
    protocol_version: Optional[str] = None

    @property
    def initialized(self) -> bool:
        return self.phase is SessionPhase.INITIALIZED

    @property
    def closed(self) -> bool:
        return self.phase is SessionPhase.CLOSED


class SessionStore:
    """Сессии HTTP-транспорта по значению заголовка `mcp-session-id`."""

    def __init__(self) -> None:
        self._sessions: Dict[str, SessionState] = {}

    def create(self, session_id: Optional[str] = None) -> SessionState:
        session = SessionState(id=session_id) if session_id else SessionState()
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> Optional[SessionState]:
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: str) -> SessionState:
        session = self._sessions.get(session_id)
        if session is None:
            session = self.create(session_id)
        return session

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions


__all__ = ["SessionPhase", "SessionState", "SessionStore"]
