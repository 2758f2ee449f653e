import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

from constants import OUTBOX_MAX_MESSAGES
from logging_config import get_logger

logger = get_logger(__name__)


class Role(str, Enum):
    HOST = "host"
    VIEWER = "viewer"


@dataclass
class Session:
    """Server-side record for one live websocket connection."""

    session_id: str
    websocket: Any
    role: Role = Role.VIEWER
    room_id: Optional[str] = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    outbox: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=OUTBOX_MAX_MESSAGES))
    writer: Optional[asyncio.Task] = None

    @property
    def is_host(self) -> bool:
        return self.role is Role.HOST

    @property
    def connected_for(self) -> float:
        return (datetime.now(timezone.utc) - self.connected_at).total_seconds()


class ConnectionRegistry:
    """Tracks every live connection by session id.

    Only the event loop that owns the broker touches this, so no locking.
    """

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def register(self, websocket: Any) -> Session:
        session = Session(session_id=uuid.uuid4().hex, websocket=websocket)
        self._sessions[session.session_id] = session
        logger.debug(f"Registered session {session.session_id} (live sessions: {len(self._sessions)})")
        return session

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Optional[Session]:
        """Drop a session. Removing an unknown or already removed id is a no-op."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            logger.debug(f"Session {session_id} already removed")
            return None
        logger.debug(f"Removed session {session_id} (live sessions: {len(self._sessions)})")
        return session

    def sessions(self, session_ids: Iterable[str]) -> List[Session]:
        return [self._sessions[sid] for sid in session_ids if sid in self._sessions]

    def clear(self):
        self._sessions.clear()

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
