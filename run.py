# /ddns-updater/run.py
import os
import sys
import signal
import logging
import threading

import requests

from ddns_updater.app import create_app
from ddns_updater.backup import backup_loop
from ddns_updater.config import read_config, read_global_config, CONFIG_FILE_NAME
from ddns_updater.exceptions import ConfigError, PersistenceError
from ddns_updater.health import HEALTH_SERVER_ADDRESS, create_health_app, query_health
from ddns_updater.ip_fetcher import IPFetcher
from ddns_updater.log import get_record_logger, setup_logging
from ddns_updater.notify import PRIORITY_FATAL, PRIORITY_INFO, PRIORITY_WARNING, make_notifier
from ddns_updater.records import RecordStore
from ddns_updater.runner import Runner
from ddns_updater.state import JSONDatabase, STATE_FILE_NAME

PROJECT_ROOT_DIR = os.path.dirname(os.path.abspath(__file__))
CONFIG_FILE = os.environ.get("DDNS_UPDATER_CONFIG", os.path.join(PROJECT_ROOT_DIR, CONFIG_FILE_NAME))
LOG_DIR_BASE = os.path.join(PROJECT_ROOT_DIR, 'logs')
DRAIN_TIMEOUT_SECONDS = 60
CONNECTIVITY_CHECK_URL = "https://google.com"

main_logger = logging.getLogger("ddns_updater.main")

_shutdown_event = threading.Event()


def handle_signal(signum, frame):
    signal_name = signal.Signals(signum).name
    if not _shutdown_event.is_set():
        main_logger.warning(f"Stopping program: caught OS signal {signal_name}")
        _shutdown_event.set()
    else:
        main_logger.warning("Shutdown already in progress.")


def run_in_thread(name, target, *args):
    def wrapper():
        try:
            target(*args)
        except Exception:
            main_logger.error(f"{name} stopped with an error", exc_info=True)
    thread = threading.Thread(target=wrapper, name=name, daemon=True)
    thread.start()
    return thread


def check_connectivity(timeout, url=CONNECTIVITY_CHECK_URL) -> bool:
    try:
        requests.head(url, timeout=timeout)
    except requests.exceptions.RequestException as e:
        main_logger.warning(f"Connectivity check to {url} failed: {e}")
        return False
    return True


def main() -> int:
    """Returns 0 when healthy (healthcheck mode), 1 on error, 2 when stopped by an OS signal."""
    if len(sys.argv) > 1 and sys.argv[1] == "healthcheck":
        healthy, message = query_health()
        if not healthy:
            print(message)
            return 1
        return 0

    setup_logging(os.environ.get("DEBUG_MODE", "").lower() == "true")

    try:
        global_settings = read_global_config(config_file_path=CONFIG_FILE, project_root_dir=PROJECT_ROOT_DIR)
    except ConfigError as e:
        main_logger.error(e)
        return 1
    setup_logging(global_settings.debug_mode)
    notify = make_notifier(global_settings)
    check_connectivity(global_settings.http_timeout_seconds)

    try:
        records_settings = read_config(global_settings, config_file_path=CONFIG_FILE, project_root_dir=PROJECT_ROOT_DIR)
        database = JSONDatabase(global_settings.data_dir)
        store = RecordStore(records_settings, database)
    except (ConfigError, PersistenceError) as e:
        main_logger.error(e)
        notify(PRIORITY_FATAL, str(e))
        return 1

    if len(store) > 1:
        main_logger.info(f"Found {len(store)} settings to update records")
    elif len(store) == 1:
        main_logger.info("Found single setting to update record")
    else:
        main_logger.warning("No records configured")

    def record_logger_factory(settings):
        return get_record_logger(LOG_DIR_BASE, global_settings.nick, settings.section_name or settings.fqdn,
                                 debug_mode=global_settings.debug_mode)

    runner = Runner(
        store=store,
        ip_fetcher=IPFetcher.from_settings(global_settings),
        period_seconds=global_settings.period_seconds,
        notify=notify,
        max_workers=global_settings.max_concurrent_updates,
        record_logger_factory=record_logger_factory,
    )

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    runner.start()
    runner.force_update()

    health_host, health_port = HEALTH_SERVER_ADDRESS.split(':')
    health_app = create_health_app(store)
    run_in_thread("health-server", health_app.run, health_host, int(health_port))

    if os.environ.get("DDNS_UPDATER_NO_UI", "false").lower() != "true":
        flask_host = os.environ.get("FLASK_RUN_HOST", "0.0.0.0")
        app = create_app(store, runner, global_settings, log_dir_base=LOG_DIR_BASE)
        run_in_thread("http-server", lambda: app.run(host=flask_host, port=global_settings.listening_port,
                                                      debug=False, use_reloader=False, threaded=True))
        main_logger.info(f"Web UI accessible at http://{flask_host}:{global_settings.listening_port}{global_settings.root_url}")
    else:
        main_logger.info("Web UI is disabled by DDNS_UPDATER_NO_UI environment variable.")

    run_in_thread("backup", backup_loop, global_settings.backup_period_seconds, global_settings.backup_directory,
                  [os.path.join(global_settings.data_dir, STATE_FILE_NAME), CONFIG_FILE], _shutdown_event)

    notify(PRIORITY_INFO, f"Launched with {len(store)} records to watch")

    _shutdown_event.wait()
    notify(PRIORITY_WARNING, "Stopping program: caught OS signal")

    runner.stop()
    if not runner.wait_stopped(timeout=DRAIN_TIMEOUT_SECONDS):
        main_logger.error(f"Update runner did not drain within {DRAIN_TIMEOUT_SECONDS}s")
    store.close()
    main_logger.info("DDNS Updater has stopped.")
    return 2


if __name__ == "__main__":
    sys.exit(main())
