# /ddns-updater/ddns_updater/updater.py
import ipaddress
import logging

from .exceptions import ProviderError
from .models import RecordSettings, Status
from .providers import get_provider_class

module_logger = logging.getLogger("ddns_updater.updater")


def update_single_record(settings: RecordSettings, ip_address: str,
                         logger: logging.Logger = None) -> tuple[Status, str]:
    """
    Pushes ip_address to the record's provider with a single provider update.

    Returns (status, message):
    - (Status.UP_TO_DATE, provider message) when the provider accepted the IP,
      whether it changed it or already had it.
    - (Status.FAIL, "transient error: ...") for network errors, timeouts and
      server side failures; the next cycle retries.
    - (Status.FAIL, "permanent error: ...") for bad credentials or settings;
      also retried next cycle but worth an operator's attention.
    """
    logger = logger or module_logger
    fqdn = settings.fqdn

    provider_class = get_provider_class(settings.provider)
    if provider_class is None:
        msg = f"permanent error: unsupported provider '{settings.provider}'"
        logger.error(f"[{fqdn}] {msg}")
        return Status.FAIL, msg

    record_type = "AAAA" if ipaddress.ip_address(ip_address).version == 6 else "A"
    logger.info(f"[{fqdn}] Calling provider '{settings.provider}' to set {record_type} record to {ip_address}")

    try:
        provider = provider_class(settings, logger)
        message = provider.update_record(ip_address, record_type)
    except ProviderError as e:
        msg = f"{e.kind} error: {e}"
        logger.error(f"[{fqdn}] Update failed: {msg}")
        return Status.FAIL, msg
    except Exception as e:
        logger.exception(f"[{fqdn}] Unexpected error during update with provider {settings.provider}")
        return Status.FAIL, f"internal error: {e}"

    logger.info(f"[{fqdn}] Provider call successful: {message}")
    return Status.UP_TO_DATE, message
