"""Logging system setup: stderr plus optional VictoriaLogs via a non-blocking queue."""

import logging
import sys
import uuid
import queue
import logging.handlers
import atexit
from pathlib import Path
from typing import Optional

from ..config import Settings, get_settings
from .handlers import TimeoutLokiHandler

APP_LOGGER_NAME = "vibecord"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def generate_instance_id() -> str:
    """Generate semantic instance ID based on runtime context."""
    project = Path.cwd().name
    session = str(uuid.uuid4())[:8]
    return f"{project}_{session}"


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Initialize the vibecord logger and return it."""
    settings = settings or get_settings()

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(settings.logging.level)
    app_logger.propagate = False

    if app_logger.hasHandlers():
        shutdown_logging()
        app_logger.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    app_logger.addHandler(stderr_handler)

    if not settings.logging.victoria_logs_enabled:
        return app_logger

    instance_id = generate_instance_id()

    try:
        log_queue: queue.Queue = queue.Queue(-1)  # -1 means unlimited size

        loki_handler = TimeoutLokiHandler(
            url=f"{settings.logging.victoria_logs_url}/insert/loki/api/v1/push?_stream_fields=app,instance_id",
            tags={
                "app": settings.logging.loki_app_tag,
                "instance_id": instance_id,
            },
            version="1",
            timeout=10.0,
        )
        loki_handler.setLevel(settings.logging.level)

        queue_handler = logging.handlers.QueueHandler(log_queue)
        queue_listener = logging.handlers.QueueListener(
            log_queue, loki_handler, respect_handler_level=True
        )
        queue_listener.start()

        app_logger._queue_listener = queue_listener  # type: ignore[attr-defined]
        atexit.register(shutdown_logging)

        app_logger.addHandler(queue_handler)
        app_logger.info(
            f"Non-blocking VictoriaLogs handler configured for instance {instance_id}"
        )
    except Exception as e:
        # VictoriaLogs being down must not stop the relay
        app_logger.warning(f"Could not set up VictoriaLogs queue handler: {e}")

    return app_logger


def shutdown_logging() -> None:
    """Stop the queue listener if it exists."""
    app_logger = logging.getLogger(APP_LOGGER_NAME)
    if hasattr(app_logger, "_queue_listener"):
        app_logger._queue_listener.stop()
        delattr(app_logger, "_queue_listener")
