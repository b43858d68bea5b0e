# /ddns-updater/ddns_updater/models.py
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from enum import Enum


class Status(str, Enum):
    UNSET = "unset"
    UP_TO_DATE = "uptodate"
    UPDATING = "updating"
    FAIL = "fail"

    def display(self) -> str:
        return {
            Status.UNSET: "Unset",
            Status.UP_TO_DATE: "Up to date",
            Status.UPDATING: "Updating",
            Status.FAIL: "Failure",
        }[self]


class IPVersion(str, Enum):
    IPV4 = "ipv4"
    IPV6 = "ipv6"
    IPV4_OR_IPV6 = "ipv4 or ipv6"

    @classmethod
    def parse(cls, value: str) -> "IPVersion":
        normalized = " ".join((value or "").lower().split())
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"unknown ip version '{value}'")


@dataclass(frozen=True)
class Event:
    """One outcome appended to a record's history. Never mutated."""
    time: datetime
    status: Status
    ip: str | None = None
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "time": self.time.astimezone(dt_timezone.utc).isoformat(),
            "ip": self.ip,
            "status": self.status.value,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Event":
        event_time = datetime.fromisoformat(data["time"])
        if event_time.tzinfo is None:
            event_time = event_time.replace(tzinfo=dt_timezone.utc)
        status = Status(data.get("status", Status.UP_TO_DATE.value))
        if status == Status.UPDATING:
            raise ValueError("updating is not a stored status")
        return cls(
            time=event_time,
            status=status,
            ip=data.get("ip") or None,
            message=data.get("message") or "",
        )


@dataclass(frozen=True)
class RecordSettings:
    domain: str
    host: str
    provider: str
    ip_version: IPVersion = IPVersion.IPV4
    section_name: str = ""
    options: dict = field(default_factory=dict, compare=False, hash=False)

    @property
    def identity(self) -> tuple[str, str]:
        return (self.domain, self.host)

    @property
    def fqdn(self) -> str:
        if self.host in ("@", ""):
            return self.domain
        return f"{self.host}.{self.domain}"

    @property
    def record_id(self) -> str:
        """Stable id used by the UI and the API filters."""
        if self.section_name and self.host in ("@", ""):
            return self.section_name
        if self.section_name:
            return f"{self.section_name}:{self.host}"
        return self.fqdn

    def get(self, key, default=None):
        return self.options.get(key, default)


@dataclass(frozen=True)
class RecordSnapshot:
    settings: RecordSettings
    status: Status
    current_ip: str | None
    last_update_time: datetime | None
    message: str
    history: tuple[Event, ...]

    @property
    def identity(self) -> tuple[str, str]:
        return self.settings.identity

    def previous_ips(self, limit: int = 3) -> list[str]:
        """Distinct successfully applied IPs before the current one, newest first."""
        ips = []
        for event in reversed(self.history):
            if event.status != Status.UP_TO_DATE or not event.ip:
                continue
            if event.ip == self.current_ip or event.ip in ips:
                continue
            ips.append(event.ip)
            if len(ips) >= limit:
                break
        return ips
