from typing import Any, Union

from backend import RoomStore
from broadcast import Fanout
from dispatcher import Dispatcher, Outcome
from logging_config import get_logger
from registry import ConnectionRegistry, Session
from schemas.messages import MalformedEnvelopeError, parse_envelope

logger = get_logger(__name__)


class SessionBroker:
    """Wires the registry, room store, dispatcher and fan-out together.

    One instance is created per running app and torn down on shutdown.
    """

    def __init__(self):
        self.registry = ConnectionRegistry()
        self.rooms = RoomStore()
        self.fanout = Fanout(self.rooms, self.registry)
        self.dispatcher = Dispatcher(self.rooms)

    async def connect(self, websocket: Any) -> Session:
        await websocket.accept()
        session = self.registry.register(websocket)
        self.fanout.start_writer(session)
        logger.info(f"Session {session.session_id} connected (live sessions: {len(self.registry)})")
        return session

    def handle_text(self, session: Session, raw: Union[str, bytes]) -> Outcome:
        """Parse one frame, run it through the dispatcher and queue the result.

        Malformed frames are logged and dropped; the connection stays open.
        Nothing here waits on a socket, so one slow peer cannot hold up the
        sender's receive loop.
        """
        try:
            message = parse_envelope(raw)
        except MalformedEnvelopeError as e:
            logger.warning(f"Ignoring malformed envelope from session {session.session_id}: {e}")
            return Outcome.ignored()

        outcome = self.dispatcher.dispatch(session, message)
        self.deliver(session, outcome)
        return outcome

    def deliver(self, session: Session, outcome: Outcome):
        for reply in outcome.replies:
            self.fanout.send(session, reply)
        if outcome.broadcast is not None:
            self.fanout.broadcast(outcome.broadcast.room_id, outcome.broadcast.message, outcome.broadcast.scope)

    def disconnect(self, session_id: str) -> bool:
        """Tear a session down. Returns False if it was already torn down."""
        session = self.registry.get(session_id)
        if session is None:
            logger.debug(f"Session {session_id} already disconnected")
            return False
        self.fanout.stop_writer(session)
        if session.room_id is not None:
            deleted = self.rooms.remove_member(session.room_id, session_id)
            logger.info(
                f"Session {session_id} left room {session.room_id}" + (" (room deleted)" if deleted else "")
            )
            session.room_id = None
        self.registry.remove(session_id)
        logger.info(
            f"Session {session_id} disconnected after {session.connected_for:.1f}s "
            f"(live sessions: {len(self.registry)})"
        )
        return True

    def close(self):
        logger.info(f"Shutting down broker: {len(self.rooms)} rooms, {len(self.registry)} sessions")
        for session in self.registry:
            self.fanout.stop_writer(session)
        self.rooms.clear()
        self.registry.clear()
