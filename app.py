import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.websockets import WebSocketState

from broker import SessionBroker
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL, UPLOAD_DIR
from logging_config import get_logger, setup_logging
from routers.rooms import rooms_router
from routers.uploads import uploads_router

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.broker = SessionBroker()
    logger.info("Session broker started")
    try:
        yield
    finally:
        app.state.broker.close()
        logger.info("Session broker stopped")


async def session_endpoint(websocket: WebSocket):
    """One coroutine per participant: receive frames until the socket goes away."""
    broker: SessionBroker = websocket.app.state.broker
    session = await broker.connect(websocket)
    session_id = session.session_id

    try:
        message_count = 0
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected normally for session {session_id}")
                break
            raw = frame.get("text")
            if raw is None:
                raw = frame.get("bytes")
            if raw is None:
                continue
            message_count += 1
            logger.debug(f"Received message #{message_count} from session {session_id}")
            broker.handle_text(session, raw)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for session {session_id}")
    except Exception as e:
        logger.error(f"WebSocket error for session {session_id}: {e}", exc_info=True)
    finally:
        broker.disconnect(session_id)
        if websocket.client_state == WebSocketState.CONNECTED:
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")


def create_app(upload_dir: str = UPLOAD_DIR) -> FastAPI:
    os.makedirs(upload_dir, exist_ok=True)

    app = FastAPI(title="SyncView", lifespan=lifespan)
    app.state.upload_dir = upload_dir

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(rooms_router)
    app.include_router(uploads_router)
    app.add_api_websocket_route("/ws", session_endpoint)
    app.mount("/uploads", StaticFiles(directory=upload_dir), name="uploads")

    logger.info(f"FastAPI application initialized (uploads in {upload_dir})")
    return app


app = create_app()
