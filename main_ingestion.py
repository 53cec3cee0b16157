# main_ingestion.py

import sys
import signal
import logging
import threading

from pydantic import ValidationError

from ragroom.config import IngestionSettings
from ragroom.errors import RagroomError
from ragroom.ingestion_manager import IngestionManager
from ragroom.models import RunState

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CANCELLED = 130


def _install_cancel_handler(cancel_event: threading.Event):
    """First Ctrl-C lets the current file finish, then stops; returns the previous handler."""
    if threading.current_thread() is not threading.main_thread():
        return None

    def _handler(signum, frame):
        logging.warning("Cancellation requested. Finishing the current file before stopping...")
        cancel_event.set()

    return signal.signal(signal.SIGINT, _handler)


def main() -> int:
    try:
        settings = IngestionSettings()
    except ValidationError as e:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logging.error(f"Invalid configuration: {e}")
        return EXIT_FATAL

    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)
    logging.info("--- Starting Ingestion Pipeline ---")

    cancel_event = threading.Event()
    previous_handler = _install_cancel_handler(cancel_event)
    manager = IngestionManager(settings)
    try:
        if settings.reset_index:
            manager.clear_all_ingested_data()
        report = manager.run_ingestion_scan(cancel_event)
    except RagroomError as e:
        logging.error(f"Ingestion failed: {e}")
        return EXIT_FATAL
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)
        manager.qdrant_manager.close()
        manager.embedding_client.close()

    if report.state == RunState.UP_TO_DATE:
        logging.info("All files are up to date.")
    else:
        logging.info(f"Successfully ingested {report.processed} of {report.files_stale} new/modified files from {settings.corpus_root}.")
    for source, reason in report.failed.items():
        logging.warning(f"Not ingested, will retry next run: {source} ({reason})")

    if report.state == RunState.CANCELLED:
        return EXIT_CANCELLED
    logging.info("--- Ingestion Pipeline Finished ---")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
