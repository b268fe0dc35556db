import uvicorn
import os
from logging_config import setup_logging

# Setup logging before importing app
log_level = os.getenv("LOG_LEVEL", "DEBUG")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)

from app import app
from backend import redis_backend
from logging_config import get_logger

logger = get_logger(__name__)

if __name__ == "__main__":
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))
    redis_backend.check_connection()
    logger.info(f"Starting relay server on {host}:{port}")
    # a single worker: the relay state is in-process
    uvicorn.run(app, host=host, port=port, workers=1)
