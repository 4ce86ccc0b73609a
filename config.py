# config.py
import os
from dotenv import load_dotenv

# Load environment variables from .env file.
load_dotenv()

DEFAULT_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png")

_config_cache = None


def _int_env(name: str, default: int) -> int:
    try:
        return int(float(os.getenv(name, default)))
    except (TypeError, ValueError):
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _split_list(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def load_config():
    """
    Loads configuration from environment variables and returns a dictionary.
    """
    extensions = _split_list(os.getenv("IMAGE_EXTENSIONS", ",".join(DEFAULT_IMAGE_EXTENSIONS)))
    # Accept "jpg" as well as ".jpg"
    extensions = [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in extensions]

    config = {
        # General Settings
        "DEBUG_MODE": os.getenv("DEBUG_MODE", "False").lower() == "true",

        # Archive location (the metadata database lives here)
        "META_PATH": os.getenv("META_PATH", "meta"),

        # Scan Settings
        "SCAN_ROOTS": _split_list(os.getenv("SCAN_ROOTS", "")),
        "IMAGE_EXTENSIONS": extensions or list(DEFAULT_IMAGE_EXTENSIONS),
        "WORKER_NUM": max(1, _int_env("WORKER_NUM", 4)),

        # Batching Settings
        "BATCH_THRESHOLD": max(1, _int_env("BATCH_THRESHOLD", 500)),
        "TICK_INTERVAL": max(0.01, _float_env("TICK_INTERVAL", 1.0)),
        "QUEUE_MAXSIZE": max(0, _int_env("QUEUE_MAXSIZE", 10000)),

        # Database Settings (0 = one connection per call)
        "DB_POOL_SIZE": max(0, _int_env("DB_POOL_SIZE", 0)),
    }
    return config


def get_config():
    """
    Returns the process-wide configuration, loading it on first use.
    """
    global _config_cache
    if _config_cache is None:
        _config_cache = load_config()
    return _config_cache


def update_config(overrides: dict):
    """
    Applies runtime overrides (e.g. from command line flags) to the cached config.
    """
    cfg = get_config()
    cfg.update({k: v for k, v in overrides.items() if v is not None})
    return cfg


if __name__ == "__main__":
    # For testing purposes, print the configuration
    config = load_config()
    from pprint import pprint

    pprint(config)
