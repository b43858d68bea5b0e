# /ddns-updater/ddns_updater/state.py
import json
import logging
import os
import threading

from .exceptions import PersistenceError
from .models import Event

STATE_FILE_NAME = 'updates.json'

module_logger = logging.getLogger("ddns_updater.state")


class JSONDatabase:
    """
    Append-only event store backed by a single JSON document:

        {"records": [{"domain": ..., "host": ..., "events": [{"time", "ip", "status", "message"}]}]}

    The whole document is kept in memory and rewritten atomically on every append.
    """

    def __init__(self, data_dir: str, file_name: str = STATE_FILE_NAME):
        self.path = os.path.join(data_dir, file_name)
        self._lock = threading.Lock()
        self._data = self._load()

    def _load(self) -> dict:
        if not os.path.exists(self.path):
            module_logger.info(f"State file {self.path} not found, starting with empty history.")
            return {"records": []}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"decoding JSON from state file {self.path}: {e}") from e
        except OSError as e:
            raise PersistenceError(f"reading state file {self.path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("records", []), list):
            raise PersistenceError(f"state file {self.path} does not have a 'records' list")
        data.setdefault("records", [])
        return data

    def _find(self, domain, host):
        for record in self._data["records"]:
            if record.get("domain") == domain and record.get("host") == host:
                return record
        return None

    def load_events(self, domain: str, host: str) -> list[Event]:
        with self._lock:
            record = self._find(domain, host)
            raw_events = list(record.get("events", [])) if record else []
        try:
            return [Event.from_dict(raw) for raw in raw_events]
        except (KeyError, ValueError, TypeError) as e:
            raise PersistenceError(f"invalid event for domain {domain} host {host}: {e}") from e

    def append_event(self, domain: str, host: str, event: Event) -> None:
        with self._lock:
            record = self._find(domain, host)
            if record is None:
                record = {"domain": domain, "host": host, "events": []}
                self._data["records"].append(record)
            record.setdefault("events", []).append(event.to_dict())
            self._write()

    def _write(self):
        tmp_path = self.path + '.tmp'
        try:
            state_dir = os.path.dirname(self.path)
            if state_dir:
                os.makedirs(state_dir, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(self._data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(f"writing state file {self.path}: {e}") from e

    def close(self) -> None:
        with self._lock:
            if self._data["records"] or os.path.exists(self.path):
                self._write()
