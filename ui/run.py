# ui/run.py - Application entry point and run_gui

from PyQt5 import QtWidgets

from config import load_poll_seconds
from database import InstrumentRepository
from scheduler import DayBoundaryScheduler
from ui.main_window import MainWindow


def run_gui(repo: InstrumentRepository) -> None:
    """Create the main window, start the daily reset scheduler and run the event loop."""
    app = QtWidgets.QApplication([])
    app.setOrganizationName("InstrumentTracker")
    app.setApplicationName("InstrumentTracker")
    scheduler = DayBoundaryScheduler(repo, poll_seconds=load_poll_seconds())
    win = MainWindow(repo, scheduler=scheduler)
    scheduler.start()
    win.showMaximized()
    try:
        app.exec_()
    finally:
        scheduler.stop()
