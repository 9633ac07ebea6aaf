# main.py

import argparse
import sqlite3
import sys
from pathlib import Path

from config import get_user_data_dir
from crash_log import install_file_logging, install_global_excepthook, logger, log_current_exception
from file_utils import clear_flag_file, set_flag_file
from database import (
    DB_PATH,
    InstrumentRepository,
    get_connection,
    initialize_db,
    run_integrity_check,
)
from services.daily_reset_service import run_daily_reset


def _crash_flag_path() -> Path:
    """Path to crash flag file (previous run may have ended unexpectedly)."""
    return get_user_data_dir() / "crash_flag.txt"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Instrument Tracker (GUI + headless daily reset)"
    )
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Path to the SQLite database (default: configured path)",
    )
    parser.add_argument(
        "--reset-now",
        action="store_true",
        help="Run the daily reset of the in/out view once, print how many records changed, then exit.",
    )
    return parser


def open_repository(db_path: Path) -> InstrumentRepository:
    conn = get_connection(db_path)
    conn = initialize_db(conn)
    integrity_err = run_integrity_check(conn)
    if integrity_err:
        conn.close()
        raise RuntimeError(f"Database integrity check failed: {integrity_err}")
    return InstrumentRepository(conn)


def main(argv=None) -> int:
    install_file_logging()
    install_global_excepthook()

    args = build_parser().parse_args(argv)
    db_path = Path(args.db) if args.db else DB_PATH
    logger.info("Program start. args=%s db=%s", sys.argv, db_path)

    try:
        repo = open_repository(db_path)
    except (sqlite3.OperationalError, RuntimeError) as e:
        logger.error("Cannot open database %s: %s", db_path, e)
        print(str(e), file=sys.stderr)
        return 1

    try:
        if args.reset_now:
            logger.info("Running in headless mode: daily reset")
            count = run_daily_reset(repo)
            msg = f"Daily reset hid {count} record(s)." if count else "Nothing to reset."
            print(msg)
            logger.info(msg)
        else:
            if _crash_flag_path().is_file():
                logger.warning("Previous run did not close normally (crash flag %s)", _crash_flag_path())
            set_flag_file(_crash_flag_path())
            logger.info("Starting GUI mode")
            from ui.run import run_gui
            run_gui(repo)
            clear_flag_file(_crash_flag_path())
        logger.info("Program exit normally")
        return 0
    except Exception:
        log_current_exception("Fatal error in main()")
        raise
    finally:
        repo.conn.close()


if __name__ == "__main__":
    sys.exit(main())
