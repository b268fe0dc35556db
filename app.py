from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from routers.meetings import meetings_router
from routers.chats import chats_router
from backend import redis_backend
from constants import CORS_ORIGINS
from relay.hub import RelayHub
from logging_config import get_logger, setup_logging
import os

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(meetings_router)
app.include_router(chats_router)

# One relay per process: identities, rooms and ringing calls live only in memory here.
# Chat membership falls back to Redis when a message arrives without its member list.
relay_hub = RelayHub(membership_resolver=redis_backend)

logger.info("FastAPI application initialized")


@app.get("/health")
async def health():
    return {"status": "ok", **relay_hub.stats()}


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Realtime relay endpoint.

    Frames are JSON objects of the form {"event": ..., "data": ...}. The first
    event a client sends is normally "setup" with its user id.
    """
    await websocket.accept()
    connection_id = relay_hub.connect(websocket)
    logger.info(f"WebSocket connection accepted: {connection_id}")

    try:
        message_count = 0
        while True:
            data = await websocket.receive_text()
            message_count += 1
            logger.debug(f"Received frame #{message_count} from connection {connection_id}")
            await relay_hub.handle_text(connection_id, data)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected normally for connection {connection_id}")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        relay_hub.disconnect(connection_id)
