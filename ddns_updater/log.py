# /ddns-updater/ddns_updater/log.py
import logging
import os
import sys
import threading
from datetime import datetime, timezone as dt_timezone

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

main_logger = logging.getLogger("ddns_updater.main")

_record_loggers = {}
_record_loggers_lock = threading.Lock()


def setup_logging(debug_mode: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug_mode else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # werkzeug logs every request at INFO
    logging.getLogger('werkzeug').setLevel(logging.INFO if debug_mode else logging.WARNING)


def record_log_path(log_dir_base: str, nick: str, section_name: str, day: str = None) -> str:
    if day is None:
        day = datetime.now(dt_timezone.utc).strftime("%Y%m%d")
    return os.path.join(log_dir_base, nick, f"DDNS_Log_{section_name}_{day}.log")


def get_record_logger(log_dir_base: str, nick: str, section_name: str, debug_mode: bool = False) -> logging.Logger:
    """
    Logger for one record section, writing to a daily file under
    <log_dir_base>/<nick>/ and propagating to the main log as well.
    The file handler is swapped when the UTC date changes.
    """
    logger_name = f"ddns_updater.record.{section_name}"
    log_file_path = record_log_path(log_dir_base, nick, section_name)

    with _record_loggers_lock:
        record_logger = _record_loggers.get(logger_name)
        if record_logger is not None:
            handlers = [h for h in record_logger.handlers if isinstance(h, logging.FileHandler)]
            if handlers and handlers[0].baseFilename == os.path.abspath(log_file_path):
                return record_logger
            main_logger.info(f"Date changed for logger [{section_name}]. Reconfiguring file handler.")

        record_logger = logging.getLogger(logger_name)
        for handler in record_logger.handlers[:]:
            record_logger.removeHandler(handler)
            handler.close()
        record_logger.setLevel(logging.DEBUG if debug_mode else logging.INFO)

        try:
            os.makedirs(os.path.dirname(log_file_path), exist_ok=True)
            file_handler = logging.FileHandler(log_file_path, encoding='utf-8')
        except OSError as e:
            main_logger.error(f"Error setting up file logger for [{section_name}]: {e}")
            return record_logger

        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        record_logger.addHandler(file_handler)
        _record_loggers[logger_name] = record_logger
        main_logger.debug(f"File logger for [{section_name}] at {log_file_path}")
        return record_logger
