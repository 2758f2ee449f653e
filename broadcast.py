import asyncio
import json
from enum import Enum
from typing import Any, Callable, List

from fastapi.websockets import WebSocketDisconnect, WebSocketState

from backend import RoomStore
from logging_config import get_logger
from registry import ConnectionRegistry, Session

logger = get_logger(__name__)


class Scope(str, Enum):
    ALL = "all"
    NON_HOST = "non_host"


async def safe_send_text(session: Session, text: str) -> bool:
    """Write one frame if the socket is still open. Returns False when dropped."""
    websocket = session.websocket
    if websocket.application_state != WebSocketState.CONNECTED:
        logger.debug(f"Skipping send to session {session.session_id}: socket not open")
        return False
    try:
        await websocket.send_text(text)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug(f"Failed to send to session {session.session_id}: {e}")
        return False
    except Exception as e:
        logger.warning(f"Unexpected error sending to session {session.session_id}: {e}", exc_info=True)
        return False


async def drain_outbox(session: Session):
    """Writer task for one connection: send queued frames in order, one at a time."""
    while True:
        text = await session.outbox.get()
        try:
            await safe_send_text(session, text)
        finally:
            session.outbox.task_done()


class Fanout:
    """Best-effort delivery of one message to a subset of a room's connections.

    Nothing here awaits a socket write: frames go onto each recipient's outbox
    and that connection's writer task sends them, so a stalled peer only
    delays itself.
    """

    def __init__(self, rooms: RoomStore, registry: ConnectionRegistry):
        self.rooms = rooms
        self.registry = registry

    def start_writer(self, session: Session):
        session.writer = asyncio.create_task(drain_outbox(session), name=f"writer-{session.session_id}")

    def stop_writer(self, session: Session):
        if session.writer is not None:
            session.writer.cancel()
            session.writer = None

    def recipients(self, room_id: str, scope: Scope = Scope.ALL) -> List[Session]:
        """Resolve the recipient set at call time."""
        room = self.rooms.get(room_id)
        if room is None:
            return []
        include: Callable[[Session], bool] = (lambda s: True) if scope is Scope.ALL else (lambda s: not s.is_host)
        return [s for s in self.registry.sessions(room.members) if s.room_id == room_id and include(s)]

    def enqueue(self, session: Session, text: str) -> bool:
        if session.websocket.application_state != WebSocketState.CONNECTED:
            logger.debug(f"Dropping frame for session {session.session_id}: socket not open")
            return False
        try:
            session.outbox.put_nowait(text)
        except asyncio.QueueFull:
            logger.warning(f"Outbox full for session {session.session_id}, dropping frame")
            return False
        return True

    def send(self, session: Session, message: dict[str, Any]) -> bool:
        return self.enqueue(session, json.dumps(message))

    def broadcast(self, room_id: str, message: dict[str, Any], scope: Scope = Scope.ALL) -> int:
        targets = self.recipients(room_id, scope)
        if not targets:
            logger.debug(f"No recipients for {message.get('type')} in room {room_id} ({scope.value})")
            return 0
        text = json.dumps(message)
        queued = sum(1 for s in targets if self.enqueue(s, text))
        logger.debug(
            f"Broadcast {message.get('type')} queued for {queued}/{len(targets)} sessions in room {room_id} ({scope.value})"
        )
        return queued

    def broadcast_all(self, room_id: str, message: dict[str, Any]) -> int:
        return self.broadcast(room_id, message, Scope.ALL)

    def broadcast_non_host(self, room_id: str, message: dict[str, Any]) -> int:
        return self.broadcast(room_id, message, Scope.NON_HOST)
