import logging
import os

_FORMAT = "[%(asctime)s.%(msecs)03d] %(levelname)s [%(name)s]: %(message)s"
_ROOT = "ipfs_file_enc"


def _setup_logging() -> logging.Logger:
    """Attach a stderr handler to the package logger once."""
    root = logging.getLogger(_ROOT)
    if not root.handlers:
        handler = logging.StreamHandler()

        level = os.getenv("IPFS_FILE_ENC_LOG_LEVEL", "WARNING").upper()
        if os.getenv("IPFS_FILE_ENC_DEBUG"):
            level = "DEBUG"
        root.setLevel(getattr(logging, level, logging.WARNING))

        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
        root.addHandler(handler)
    return root


def get_logger(component: str) -> logging.Logger:
    """Logger for one component, e.g. ``get_logger("node_resolver")``."""
    _setup_logging()
    return logging.getLogger(f"{_ROOT}.{component}")


def log(logger: logging.Logger, level: str, message: str, **kwargs) -> None:
    """Structured logging with optional ``key=value`` context."""
    log_method = getattr(logger, level.lower(), logger.info)

    if kwargs:
        context = " ".join([f"{k}={v}" for k, v in kwargs.items()])
        message = f"{message} | {context}"

    log_method(message)
