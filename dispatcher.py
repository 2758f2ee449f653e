"""Room state machine.

Each inbound message is checked against the sender's session and room and
performs at most one transition. Every check happens before any mutation, and
nothing here awaits, so a message is handled atomically on the event loop.
The result is an ``Outcome`` describing what to send; delivery is the
broker's job.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Union

from backend import Privacy, Room, RoomStore
from broadcast import Scope
from constants import ROOM_ID_PATTERN
from logging_config import get_logger
from registry import Role, Session
from schemas import messages
from schemas.messages import CreateRoom, InboundMessage, InvalidMessage, JoinRoom, PageChange, UploadPdf

logger = get_logger(__name__)

ROOM_ID_RE = re.compile(ROOM_ID_PATTERN)

INVALID_ROOM_ID = "Room name must contain only English letters and numbers."
ROOM_EXISTS = "A room with this name already exists."
INVALID_PRIVACY = "Invalid room privacy setting."
PASSWORD_REQUIRED = "Private rooms require a password."
ROOM_NOT_FOUND = "Room does not exist."
WRONG_PASSWORD = "Incorrect password."
HOST_ONLY_UPLOAD = "Only the host can upload a PDF."
INVALID_PDF = "Invalid PDF reference."


class Status(str, Enum):
    APPLIED = "applied"
    REJECTED = "rejected"
    IGNORED = "ignored"


@dataclass
class Broadcast:
    room_id: str
    message: dict[str, Any]
    scope: Scope = Scope.ALL


@dataclass
class Outcome:
    status: Status
    replies: List[dict[str, Any]] = field(default_factory=list)
    broadcast: Optional[Broadcast] = None

    @classmethod
    def rejected(cls, message: str) -> "Outcome":
        return cls(Status.REJECTED, replies=[messages.error(message)])

    @classmethod
    def ignored(cls) -> "Outcome":
        return cls(Status.IGNORED)


def valid_room_id(room_id: Optional[str]) -> bool:
    return bool(room_id) and ROOM_ID_RE.fullmatch(room_id) is not None


class Dispatcher:
    def __init__(self, rooms: RoomStore):
        self.rooms = rooms
        self._handlers = {
            CreateRoom: self._create_room,
            JoinRoom: self._join_room,
            UploadPdf: self._upload_pdf,
            PageChange: self._page_change,
            InvalidMessage: self._invalid,
        }

    def dispatch(self, session: Session, message: Union[InboundMessage, InvalidMessage, None]) -> Outcome:
        """Apply one message. ``None`` stands for an unrecognised type and is ignored."""
        if message is None:
            logger.debug(f"Ignoring unrecognised message type from session {session.session_id}")
            return Outcome.ignored()
        handler = self._handlers[type(message)]
        outcome = handler(session, message)
        logger.debug(f"{message.type} from session {session.session_id}: {outcome.status.value}")
        return outcome

    def _enter_room(self, session: Session, room: Room, role: Role):
        # leave any other room first so membership and session.room_id agree
        if session.room_id is not None and session.room_id != room.room_id:
            logger.info(f"Session {session.session_id} leaving room {session.room_id} for {room.room_id}")
            self.rooms.remove_member(session.room_id, session.session_id)
        session.room_id = room.room_id
        session.role = role
        self.rooms.add_member(room.room_id, session.session_id)

    def _replay_document(self, room: Room) -> List[dict[str, Any]]:
        if room.document is None:
            return []
        return [messages.pdf_loaded(room.document, room.current_page)]

    def _create_room(self, session: Session, message: CreateRoom) -> Outcome:
        room_id = message.room_id
        if not valid_room_id(room_id):
            logger.warning(f"create_room rejected for session {session.session_id}: invalid room id {room_id!r}")
            return Outcome.rejected(INVALID_ROOM_ID)
        if self.rooms.exists(room_id):
            logger.warning(f"create_room rejected for session {session.session_id}: room {room_id} exists")
            return Outcome.rejected(ROOM_EXISTS)

        try:
            privacy = Privacy(message.privacy or Privacy.PUBLIC.value)
        except ValueError:
            logger.warning(f"create_room rejected for session {session.session_id}: privacy {message.privacy!r}")
            return Outcome.rejected(INVALID_PRIVACY)

        password = None
        if privacy is Privacy.PRIVATE:
            password = (message.password or "").strip()
            if not password:
                logger.warning(f"create_room rejected for session {session.session_id}: missing password")
                return Outcome.rejected(PASSWORD_REQUIRED)

        room = self.rooms.create_or_get(room_id, privacy, password)
        self._enter_room(session, room, Role.HOST)
        logger.info(f"Session {session.session_id} created room {room_id} as host")

        replies = [messages.room_joined(room_id, True, privacy.value)]
        replies.extend(self._replay_document(room))
        return Outcome(Status.APPLIED, replies=replies)

    def _join_room(self, session: Session, message: JoinRoom) -> Outcome:
        room_id = message.room_id
        if not valid_room_id(room_id):
            logger.warning(f"join_room rejected for session {session.session_id}: invalid room id {room_id!r}")
            return Outcome.rejected(INVALID_ROOM_ID)

        room = self.rooms.get(room_id)
        if room is None:
            logger.warning(f"join_room rejected for session {session.session_id}: room {room_id} not found")
            return Outcome.rejected(ROOM_NOT_FOUND)

        if room.is_private:
            supplied = (message.password or "").strip()
            if not supplied or supplied != room.password:
                logger.warning(f"join_room rejected for session {session.session_id}: bad password for {room_id}")
                return Outcome.rejected(WRONG_PASSWORD)

        self._enter_room(session, room, Role.VIEWER)
        logger.info(f"Session {session.session_id} joined room {room_id} (members: {len(room.members)})")

        replies = [messages.room_joined(room_id, False, room.privacy.value)]
        replies.extend(self._replay_document(room))
        return Outcome(Status.APPLIED, replies=replies)

    def _host_room(self, session: Session) -> Optional[Room]:
        if session.room_id is None or not session.is_host:
            return None
        return self.rooms.get(session.room_id)

    def _upload_pdf(self, session: Session, message: UploadPdf) -> Outcome:
        room = self._host_room(session)
        if room is None:
            logger.warning(f"upload_pdf rejected for session {session.session_id}: not a host")
            return Outcome.rejected(HOST_ONLY_UPLOAD)

        room.set_document(message.pdf)
        logger.info(f"Room {room.room_id} loaded {message.pdf.original_name} ({message.pdf.filename})")
        return Outcome(
            Status.APPLIED,
            broadcast=Broadcast(room.room_id, messages.pdf_loaded(room.document, room.current_page), Scope.ALL),
        )

    def _page_change(self, session: Session, message: PageChange) -> Outcome:
        room = self._host_room(session)
        if room is None or room.document is None:
            logger.debug(f"page_change from session {session.session_id} dropped")
            return Outcome.ignored()

        room.current_page = message.page
        return Outcome(
            Status.APPLIED,
            broadcast=Broadcast(room.room_id, messages.page_change(message.page), Scope.NON_HOST),
        )

    def _invalid(self, session: Session, message: InvalidMessage) -> Outcome:
        """Answer a known type whose fields failed validation, in the same check order as a valid one."""
        logger.warning(f"{message.type} from session {session.session_id} has invalid fields: {sorted(message.fields)}")
        if message.type == "page_change":
            return Outcome.ignored()
        if message.type == "upload_pdf":
            if self._host_room(session) is None:
                return Outcome.rejected(HOST_ONLY_UPLOAD)
            return Outcome.rejected(INVALID_PDF)

        cleaned = message.without_invalid_fields()
        if message.fields == {"password"}:
            # a password that is not a string counts as no password
            return self._handlers[type(cleaned)](session, cleaned)
        if "room_id" in message.fields or not valid_room_id(cleaned.room_id):
            return Outcome.rejected(INVALID_ROOM_ID)
        # join_room has nothing else that can fail, so this is create_room with a bad privacy
        if self.rooms.exists(cleaned.room_id):
            return Outcome.rejected(ROOM_EXISTS)
        return Outcome.rejected(INVALID_PRIVACY)
