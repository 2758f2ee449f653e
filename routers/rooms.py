from fastapi import APIRouter, Request

from broker import SessionBroker
from logging_config import get_logger
from schemas.rooms import HealthResponse, RoomListResponse

logger = get_logger(__name__)

rooms_router = APIRouter(tags=["rooms"])


def get_broker(request: Request) -> SessionBroker:
    return request.app.state.broker


@rooms_router.get("/rooms", response_model=RoomListResponse)
async def list_rooms(request: Request):
    """List live rooms, newest first.

    Returns for each room:
    - roomId: room name
    - privacy: "public" or "private"
    - clientCount: connected members
    - hasPdf: whether the host has loaded a document
    - createdAt: creation timestamp

    Passwords are never included.
    """
    client_host = request.client.host if request.client else "unknown"
    rooms = get_broker(request).rooms.list()
    logger.info(f"Room list request from {client_host}: {len(rooms)} rooms")
    return RoomListResponse(rooms=rooms)


@rooms_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    broker = get_broker(request)
    return HealthResponse(rooms=len(broker.rooms), connections=len(broker.registry))
