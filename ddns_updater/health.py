# /ddns-updater/ddns_updater/health.py
import logging
import socket

import requests
from flask import Flask

from .models import Status

HEALTH_SERVER_ADDRESS = "127.0.0.1:9999"

module_logger = logging.getLogger("ddns_updater.health")


def lookup_ips(hostname: str) -> set[str]:
    infos = socket.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP)
    return {info[4][0] for info in infos}


def is_healthy(store, lookup_ip=lookup_ips) -> tuple[bool, str]:
    """
    Unhealthy when a record is failing, or when an up to date record does
    not resolve to the IP it was last set to.
    """
    problems = []
    for snapshot in store.all():
        fqdn = snapshot.settings.fqdn
        if snapshot.status == Status.FAIL:
            problems.append(f"{fqdn}: {snapshot.message or 'update failed'}")
            continue
        if snapshot.status != Status.UP_TO_DATE or not snapshot.current_ip:
            continue
        if snapshot.settings.host == '*':
            continue
        try:
            resolved = lookup_ip(fqdn)
        except OSError as e:
            problems.append(f"{fqdn}: lookup failed: {e}")
            continue
        if snapshot.current_ip not in resolved:
            problems.append(f"{fqdn}: resolves to {', '.join(sorted(resolved))} instead of {snapshot.current_ip}")

    if problems:
        return False, "; ".join(problems)
    return True, "healthy"


def create_health_app(store, lookup_ip=lookup_ips) -> Flask:
    health_app = Flask("ddns_updater.health")

    @health_app.route("/")
    def health():
        healthy, message = is_healthy(store, lookup_ip)
        if not healthy:
            module_logger.warning(f"Unhealthy: {message}")
            return message, 500
        return "", 200

    return health_app


def query_health(address: str = HEALTH_SERVER_ADDRESS, timeout: float = 5.0) -> tuple[bool, str]:
    """Client side of the container health check."""
    try:
        response = requests.get(f"http://{address}/", timeout=timeout)
    except requests.exceptions.RequestException as e:
        return False, f"cannot query health server: {e}"
    if response.status_code != 200:
        return False, response.text.strip() or f"HTTP {response.status_code}"
    return True, "healthy"
