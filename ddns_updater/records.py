# /ddns-updater/ddns_updater/records.py
import logging
import threading
from datetime import datetime, timedelta

from .exceptions import PersistenceError
from .models import Event, RecordSettings, RecordSnapshot, Status
from .utils import utc_now

module_logger = logging.getLogger("ddns_updater.records")


class _Record:
    """Mutable record state. Only ever touched under RecordStore._lock."""

    def __init__(self, settings: RecordSettings, history: list[Event]):
        self.settings = settings
        self.history = list(history)
        self.status = Status.UNSET
        self.current_ip = None
        self.last_update_time = None
        self.message = ""
        if self.history:
            last = self.history[-1]
            self.status = last.status
            self.message = last.message
        for event in reversed(self.history):
            if event.status == Status.UP_TO_DATE:
                self.current_ip = event.ip
                self.last_update_time = event.time
                break

    def apply(self, event: Event):
        self.history.append(event)
        self.status = event.status
        self.message = event.message
        if event.status == Status.UP_TO_DATE:
            self.current_ip = event.ip
            self.last_update_time = event.time

    def snapshot(self) -> RecordSnapshot:
        return RecordSnapshot(
            settings=self.settings,
            status=self.status,
            current_ip=self.current_ip,
            last_update_time=self.last_update_time,
            message=self.message,
            history=tuple(self.history),
        )


class RecordStore:
    """
    Thread-safe in-memory table of records keyed by (domain, host).

    Reads return snapshots; every state change goes through apply_result,
    which appends the Event and updates the status in one step, then
    persists the Event. Persistence is best effort: a failed write is
    reported to the caller but the in-memory state stays advanced.
    """

    def __init__(self, settings_list, persistence, time_now=utc_now, logger=None):
        self.persistence = persistence
        self.time_now = time_now
        self.logger = logger or module_logger
        self._lock = threading.Lock()
        self._persist_locks = {}
        self._records = {}
        self._closed = False

        for settings in settings_list:
            identity = settings.identity
            if identity in self._records:
                self.logger.warning(f"Ignoring duplicate record for domain {settings.domain} host {settings.host}")
                continue
            self.logger.info(f"Reading history from database: domain {settings.domain} host {settings.host}")
            events = persistence.load_events(settings.domain, settings.host)
            self._records[identity] = _Record(settings, events)
            self._persist_locks[identity] = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._records)

    def get(self, identity) -> RecordSnapshot:
        with self._lock:
            return self._records[tuple(identity)].snapshot()

    def all(self) -> list[RecordSnapshot]:
        with self._lock:
            return [record.snapshot() for record in self._records.values()]

    def find(self, record_id: str) -> RecordSnapshot | None:
        with self._lock:
            for record in self._records.values():
                if record.settings.record_id == record_id:
                    return record.snapshot()
        return None

    def begin_update(self, identity) -> bool:
        """Marks the record as Updating. False if an update is already in flight."""
        with self._lock:
            record = self._records[tuple(identity)]
            if record.status == Status.UPDATING:
                return False
            record.status = Status.UPDATING
            return True

    def _next_event_time(self, record: _Record) -> datetime:
        event_time = self.time_now()
        if record.history and event_time <= record.history[-1].time:
            event_time = record.history[-1].time + timedelta(microseconds=1)
        return event_time

    def apply_result(self, identity, status: Status, ip: str | None = None, message: str = "") -> Event:
        if status == Status.UPDATING:
            raise ValueError("Updating is not a result status")
        if status == Status.FAIL:
            ip = None
        identity = tuple(identity)

        # Per-identity lock keeps persistence writes for one key in event order.
        with self._persist_locks[identity]:
            with self._lock:
                record = self._records[identity]
                event = Event(time=self._next_event_time(record), status=status, ip=ip, message=message)
                record.apply(event)
            self.persistence.append_event(identity[0], identity[1], event)
        return event

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self.persistence.close()
        except PersistenceError as e:
            self.logger.error(f"Final flush of record history failed: {e}")
