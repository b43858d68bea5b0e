# /ddns-updater/ddns_updater/runner.py
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import timedelta
from enum import Enum

from .exceptions import IPResolutionError, PersistenceError
from .models import Status
from .notify import PRIORITY_INFO, PRIORITY_ERROR
from .updater import update_single_record
from .utils import format_timedelta

module_logger = logging.getLogger("ddns_updater.runner")


class RunnerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class CycleReport:
    def __init__(self, number, forced=False, refresh=False):
        self.number = number
        self.forced = forced
        self.refresh = refresh
        self.updated = []
        self.unchanged = []
        self.skipped = []
        self.failed = []

    def summary(self) -> str:
        kind = " (forced)" if self.forced else ""
        return (f"Update cycle {self.number}{kind}: {len(self.updated)} updated, "
                f"{len(self.unchanged)} up to date, {len(self.skipped)} skipped, {len(self.failed)} failed")


class Runner:
    """
    Drives the update cycles.

    run() waits for the period to elapse, a forced update or a stop request,
    runs one cycle, and loops. A cycle resolves the public IP once per
    address family, selects the records that need an update and updates them
    in parallel (at most max_workers at a time, unbounded when None), then
    reports once for the whole cycle. Cycles never overlap. Forced updates
    requested while a cycle runs collapse into a single follow-up cycle.
    """

    def __init__(self, store, ip_fetcher, period_seconds, updater=update_single_record,
                 notify=None, max_workers=None, logger=None, record_logger_factory=None):
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.store = store
        self.ip_fetcher = ip_fetcher
        self.period_seconds = period_seconds
        self.updater = updater
        self.notify = notify
        self.max_workers = max_workers
        self.logger = logger or module_logger
        self.record_logger_factory = record_logger_factory

        self._cond = threading.Condition()
        self._state = RunnerState.IDLE
        self._force_pending = False
        self._refresh_pending = False
        self._stop_requested = False
        self._stopped = threading.Event()
        self._cycle_lock = threading.Lock()
        self._thread = None
        self.cycles_completed = 0
        self.last_report = None

    @property
    def state(self) -> RunnerState:
        with self._cond:
            return self._state

    @property
    def stop_requested(self) -> bool:
        with self._cond:
            return self._stop_requested

    def force_update(self, refresh: bool = False) -> bool:
        """
        Requests an out of schedule cycle without blocking. Returns False when
        a forced cycle was already pending (the request is merged into it) or
        when the runner is stopping.
        """
        with self._cond:
            if self._stop_requested:
                return False
            already_pending = self._force_pending
            self._force_pending = True
            self._refresh_pending = self._refresh_pending or refresh
            self._cond.notify_all()
            return not already_pending

    def stop(self) -> None:
        with self._cond:
            if self._stop_requested:
                return
            self._stop_requested = True
            if self._state == RunnerState.RUNNING:
                self._state = RunnerState.DRAINING
                self.logger.info("Stop requested, waiting for in-flight updates to finish")
            self._cond.notify_all()

    def wait_stopped(self, timeout=None) -> bool:
        return self._stopped.wait(timeout)

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.run, name="ddns-runner", daemon=True)
        self._thread.start()
        return self._thread

    def run(self) -> None:
        self.logger.info(f"Updating records every {format_timedelta(timedelta(seconds=self.period_seconds))}")
        next_tick = time.monotonic() + self.period_seconds
        try:
            while True:
                with self._cond:
                    while not self._stop_requested and not self._force_pending:
                        remaining = next_tick - time.monotonic()
                        if remaining <= 0:
                            break
                        self._cond.wait(remaining)
                    if self._stop_requested:
                        break
                    forced = self._force_pending
                    refresh = self._refresh_pending
                    self._force_pending = False
                    self._refresh_pending = False
                    self._state = RunnerState.RUNNING

                if not forced:
                    next_tick = time.monotonic() + self.period_seconds

                try:
                    self.run_cycle(forced=forced, refresh=refresh)
                except Exception:
                    self.logger.exception("Unexpected error during update cycle")

                with self._cond:
                    if self._state == RunnerState.RUNNING:
                        self._state = RunnerState.IDLE
        finally:
            with self._cond:
                self._state = RunnerState.STOPPED
            self._stopped.set()
            self.logger.info("Update runner stopped")

    def run_cycle(self, forced: bool = False, refresh: bool = False) -> CycleReport:
        with self._cycle_lock:
            report = CycleReport(self.cycles_completed + 1, forced=forced, refresh=refresh)
            to_update = self._select_records(report)
            if to_update:
                self._dispatch(to_update, report)
            self.cycles_completed += 1
            self.last_report = report
        self._report(report)
        return report

    def _select_records(self, report):
        resolved = {}
        to_update = []
        for snapshot in self.store.all():
            settings = snapshot.settings
            ip_version = settings.ip_version
            if ip_version not in resolved:
                try:
                    resolved[ip_version] = self.ip_fetcher.get_public_ip(ip_version)
                except IPResolutionError as e:
                    self.logger.warning(f"Cannot get public {ip_version.value} address: {e}")
                    resolved[ip_version] = None

            ip = resolved[ip_version]
            if ip is None:
                report.skipped.append(settings.fqdn)
            elif self._needs_update(snapshot, ip, report.refresh):
                to_update.append((snapshot, ip))
            else:
                report.unchanged.append(settings.fqdn)
        return to_update

    @staticmethod
    def _needs_update(snapshot, ip, refresh):
        if snapshot.status == Status.UPDATING:
            return False
        if refresh or snapshot.status in (Status.UNSET, Status.FAIL):
            return True
        return snapshot.current_ip != ip

    def _dispatch(self, to_update, report):
        workers = min(self.max_workers or len(to_update), len(to_update))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ddns-update") as executor:
            futures = {executor.submit(self._update_one, snapshot, ip): snapshot for snapshot, ip in to_update}
            for future in as_completed(futures):
                fqdn = futures[future].settings.fqdn
                status, message = future.result()
                if status is None:
                    report.skipped.append(fqdn)
                elif status == Status.UP_TO_DATE:
                    report.updated.append(fqdn)
                else:
                    report.failed.append((fqdn, message))

    def _update_one(self, snapshot, ip):
        settings = snapshot.settings
        identity = settings.identity
        if self.stop_requested:
            return None, "stopping"
        if not self.store.begin_update(identity):
            return None, "update already in progress"

        record_logger = self.record_logger_factory(settings) if self.record_logger_factory else self.logger
        if snapshot.current_ip and snapshot.current_ip != ip:
            record_logger.info(f"[{settings.fqdn}] IP changed from {snapshot.current_ip} to {ip}")
        try:
            status, message = self.updater(settings, ip, record_logger)
        except Exception as e:
            record_logger.exception(f"[{settings.fqdn}] Updater raised")
            status, message = Status.FAIL, f"internal error: {e}"

        try:
            self.store.apply_result(identity, status, ip=ip if status == Status.UP_TO_DATE else None, message=message)
        except PersistenceError as e:
            self.logger.error(f"[{settings.fqdn}] Saving history failed: {e}")
        return status, message

    def _report(self, report):
        summary = report.summary()
        if report.failed or report.skipped:
            self.logger.warning(summary)
        elif report.updated:
            self.logger.info(summary)
        else:
            self.logger.debug(summary)

        if report.failed:
            details = "; ".join(f"{fqdn}: {message}" for fqdn, message in report.failed)
            self._notify(PRIORITY_ERROR, f"{summary}. Failures: {details}")
        elif report.updated:
            self._notify(PRIORITY_INFO, f"{summary}: {', '.join(report.updated)}")

    def _notify(self, priority, message):
        if self.notify is None:
            return
        try:
            self.notify(priority, message)
        except Exception as e:
            self.logger.error(f"Notification failed: {e}")
