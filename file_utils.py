# file_utils.py - Small file helpers (atomic writes, flag files)

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, content: str, encoding: str = "utf-8") -> None:
    """
    Write content to path via a temp file and replace, so readers never see
    a partial file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(content, encoding=encoding)
        tmp.replace(path)
    finally:
        if tmp.exists():
            try:
                tmp.unlink()
            except OSError:
                pass


def set_flag_file(path: Path) -> bool:
    """Create a marker file. Returns False (and logs) if it cannot be written."""
    try:
        atomic_write_text(path, "1")
        return True
    except OSError as e:
        logger.warning("Failed to write flag file %s: %s", path, e)
        return False


def clear_flag_file(path: Path) -> bool:
    """Remove a marker file. Returns True if it existed and was removed."""
    path = Path(path)
    try:
        if path.is_file():
            path.unlink()
            return True
    except OSError as e:
        logger.warning("Failed to remove flag file %s: %s", path, e)
    return False
