from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Set

from logging_config import get_logger
from schemas.rooms import PdfInfo, RoomSummary

logger = get_logger(__name__)


class Privacy(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


@dataclass
class Room:
    room_id: str
    privacy: Privacy = Privacy.PUBLIC
    password: Optional[str] = None
    document: Optional[PdfInfo] = None
    current_page: int = 1
    members: Set[str] = field(default_factory=set)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_private(self) -> bool:
        return self.privacy is Privacy.PRIVATE

    def set_document(self, document: PdfInfo):
        self.document = document
        self.current_page = 1

    def summary(self) -> RoomSummary:
        return RoomSummary(
            room_id=self.room_id,
            privacy=self.privacy.value,
            client_count=len(self.members),
            has_pdf=self.document is not None,
            created_at=self.created_at,
        )


class RoomStore:
    """Owns every Room. A room lives exactly as long as it has members."""

    def __init__(self):
        self._rooms: Dict[str, Room] = {}

    def create_or_get(self, room_id: str, privacy: Privacy = Privacy.PUBLIC, password: Optional[str] = None) -> Room:
        """Create the room if absent. An existing room is returned untouched."""
        room = self._rooms.get(room_id)
        if room is not None:
            logger.debug(f"Room {room_id} already exists, returning existing room")
            return room
        room = Room(
            room_id=room_id,
            privacy=privacy,
            password=password if privacy is Privacy.PRIVATE else None,
        )
        self._rooms[room_id] = room
        logger.info(f"Created room {room_id} ({privacy.value})")
        return room

    def get(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def exists(self, room_id: str) -> bool:
        return room_id in self._rooms

    def add_member(self, room_id: str, session_id: str):
        room = self._rooms[room_id]
        room.members.add(session_id)
        logger.debug(f"Session {session_id} added to room {room_id} (members: {len(room.members)})")

    def remove_member(self, room_id: str, session_id: str) -> bool:
        """Remove a member and delete the room once it is empty.

        Safe to call for an unknown room or a non-member. Returns True when
        this call deleted the room.
        """
        room = self._rooms.get(room_id)
        if room is None or session_id not in room.members:
            logger.debug(f"Session {session_id} is not a member of room {room_id}, nothing to remove")
            return False
        room.members.discard(session_id)
        logger.debug(f"Session {session_id} removed from room {room_id} (members: {len(room.members)})")
        if not room.members:
            del self._rooms[room_id]
            logger.info(f"Room {room_id} is empty, deleted")
            return True
        return False

    def list(self) -> List[RoomSummary]:
        # reversed() first so rooms created within the same clock tick still come out newest first
        rooms = sorted(reversed(list(self._rooms.values())), key=lambda r: r.created_at, reverse=True)
        return [room.summary() for room in rooms]

    def clear(self):
        count = len(self._rooms)
        self._rooms.clear()
        logger.info(f"Cleared {count} rooms")

    def __len__(self) -> int:
        return len(self._rooms)
