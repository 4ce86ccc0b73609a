# logging_config.py
import logging
from config import get_config

config = get_config()
DEBUG_MODE = config["DEBUG_MODE"]

# Configure logging once for the whole ingest process.
logging.basicConfig(
    level=logging.DEBUG if DEBUG_MODE else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Pillow logs every plugin import and chunk at DEBUG.
logging.getLogger("PIL").setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """
    Returns a logger with the given name.
    """
    return logging.getLogger(name)


def set_verbose(enabled: bool) -> None:
    """Switches the root logger between DEBUG and INFO at runtime."""
    logging.getLogger().setLevel(logging.DEBUG if enabled else logging.INFO)
