import logging
from datetime import datetime
import inspect
from colorlog import ColoredFormatter
import os
from tools.config import CALL_LOG_DIR

__all__ = [
    "log_critical",
    "log_error",
    "log_info",
    "log_warning",
    "log_debug",
    "set_log_level",
    "configure_log_dir",
]

LOGGER = logging.getLogger("peer_call")

## Allow all messages to be passed to handlers
LOGGER.setLevel(logging.DEBUG)
LOGGER.propagate = False

## Libraries that log every STUN/RTP packet at INFO or DEBUG
NOISY_LOGGERS = ["aioice", "aiortc", "aioice.ice", "aiortc.rtcrtpreceiver"]

log_format = ColoredFormatter(
    "%(log_color)s%(asctime)s | %(levelname)s | %(message)s%(reset)s"
)
file_format = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
level = logging.INFO

## Configure logging stream
stream_handler = logging.StreamHandler()
stream_handler.setLevel(level)
stream_handler.setFormatter(log_format)
stream_handler.set_name("stream_handler")
LOGGER.addHandler(stream_handler)

for _name in NOISY_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)


def _add_file_handler(name: str, path: str, handler_level: int) -> None:
    for handler in LOGGER.handlers:
        if handler.name == name:
            LOGGER.removeHandler(handler)
            handler.close()

    handler = logging.FileHandler(path, mode="a")
    handler.setLevel(handler_level)
    handler.setFormatter(file_format)
    handler.set_name(name)
    LOGGER.addHandler(handler)


def configure_log_dir(log_dir: str) -> None:
    """
    Write daily log files below log_dir.

    The debug file always receives everything; the regular file follows the
    level of the stream handler.
    """
    os.makedirs(os.path.join(log_dir, "debug"), exist_ok=True)
    os.makedirs(os.path.join(log_dir, "logs"), exist_ok=True)
    today = datetime.now().strftime("%Y-%m-%d")

    _add_file_handler(
        "debugger_handler",
        os.path.join(log_dir, "debug", f"peer-call-debug-{today}.log"),
        logging.DEBUG,
    )
    _add_file_handler(
        "regular_handler",
        os.path.join(log_dir, "logs", f"peer-call-logs-{today}.log"),
        stream_handler.level,
    )


if CALL_LOG_DIR:
    configure_log_dir(CALL_LOG_DIR)


def log_critical(message: str) -> None:
    """Log a critical error message."""
    LOGGER.critical(
        f"{inspect.stack()[1].function} | {message}",
        stack_info=True,
        stacklevel=3,
    )


def log_error(message: str) -> None:
    """Log an error message."""
    LOGGER.error(f"{inspect.stack()[1].function} | {message}")


def log_info(message: str) -> None:
    """Log an informational message."""
    LOGGER.info(f"{inspect.stack()[1].function} | {message}")


def log_warning(message: str) -> None:
    """Log a warning message."""
    LOGGER.warning(f"{inspect.stack()[1].function} | {message}")


def log_debug(message: str) -> None:
    """Log a debug message."""
    LOGGER.debug(f"{inspect.stack()[1].function} | {message}")


def set_log_level(level) -> None:
    """
    Set the logging level of every handler except the debug file.

    Accepts either a logging constant or its name ("DEBUG", "INFO", ...).
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    for handler in LOGGER.handlers:
        if handler.name != "debugger_handler":
            handler.setLevel(level)

    noisy_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)
