# crash_log.py

import logging
import sys
import traceback
from pathlib import Path

from config import get_app_base_dir

LOG_DIR = get_app_base_dir() / "logs"
LOG_FILE = LOG_DIR / "instrument_tracker.log"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger("instrument_tracker")


def install_file_logging(log_file: Path | None = None, level: int = logging.INFO) -> Path:
    """
    Send all module loggers (root logger) to the log file.
    Safe to call more than once; only one file handler per path is attached.
    """
    path = Path(log_file) if log_file is not None else LOG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers:
        if isinstance(h, logging.FileHandler) and Path(h.baseFilename) == path.resolve():
            return path
    fh = logging.FileHandler(path, encoding="utf-8")
    fh.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    root.addHandler(fh)
    return path


def log_exception(exc_type, exc_value, exc_tb):
    """
    Global exception hook: log uncaught exceptions to file and stderr.
    """
    tb_str = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))

    try:
        logger.error("Uncaught exception:\n%s", tb_str)
    except Exception:
        # Logging should never crash the crash logger
        pass

    try:
        sys.__stderr__.write(tb_str)
        sys.__stderr__.flush()
    except Exception:
        pass


def log_current_exception(context: str = ""):
    """
    Helper to log inside a try/except block if you manually catch something fatal.
    """
    exc_type, exc_value, exc_tb = sys.exc_info()
    if exc_type is None:
        return
    prefix = f"[{context}] " if context else ""
    tb_str = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
    try:
        logger.error("%sCaught exception:\n%s", prefix, tb_str)
    except Exception:
        pass


def install_global_excepthook():
    """
    Install the global excepthook so any uncaught exception is logged.
    """
    sys.excepthook = log_exception
