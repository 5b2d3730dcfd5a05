# crash_log.py - Application logger and global exception hook

import logging
import sys
import traceback

from config import get_user_config_dir

LOG_DIR = get_user_config_dir() / "logs"
LOG_FILE = LOG_DIR / "maintenance_tracker.log"

logger = logging.getLogger("maintenance_tracker")
logger.setLevel(logging.INFO)


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Attach the file handler to the root logger so module loggers
    (logging.getLogger(__name__)) end up in the same file. Safe to call twice.
    """
    root = logging.getLogger()
    root.setLevel(level)
    if any(getattr(h, "_maintenance_tracker", False) for h in root.handlers):
        return logger
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
    except OSError as e:
        handler = logging.StreamHandler(sys.stderr)
        logger.warning("Log file unavailable (%s); logging to stderr", e)
    handler._maintenance_tracker = True
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
    return logger


def log_exception(exc_type, exc_value, exc_tb):
    """
    Global exception hook: log uncaught exceptions to file and stderr.
    """
    tb_str = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
    logger.error("Uncaught exception:\n%s", tb_str)
    # Also echo to real stderr so you see it if running from console
    if sys.__stderr__ is not None:
        sys.__stderr__.write(tb_str)
        sys.__stderr__.flush()


def log_current_exception(context: str = ""):
    """
    Helper to log inside a try/except block if you manually catch something fatal.
    """
    exc_type, exc_value, exc_tb = sys.exc_info()
    if exc_type is None:
        return
    prefix = f"[{context}] " if context else ""
    tb_str = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
    logger.error("%sCaught exception:\n%s", prefix, tb_str)


def install_global_excepthook():
    """
    Install the global excepthook so any uncaught exception is logged.
    """
    sys.excepthook = log_exception
