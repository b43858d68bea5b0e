# /ddns-updater/ddns_updater/providers/base_provider.py
from abc import ABC, abstractmethod
import logging

import requests

from ..exceptions import PermanentProviderError, TransientProviderError
from ..models import RecordSettings

DEFAULT_HTTP_TIMEOUT = 10


class BaseProvider(ABC):
    """
    One DNS provider back end.

    update_record performs the provider call(s) for one record and returns a
    success message. It never retries: failures raise TransientProviderError
    (worth retrying next cycle) or PermanentProviderError (settings or
    credentials are wrong).
    """
    NAME = "base"

    def __init__(self, settings: RecordSettings, logger: logging.Logger):
        self.settings = settings
        self.logger = logger
        self.domain = settings.domain
        self.host = settings.host
        self.timeout = settings.get('http_timeout_seconds', DEFAULT_HTTP_TIMEOUT)

    @abstractmethod
    def update_record(self, ip_address: str, record_type: str = "A") -> str:
        pass

    @staticmethod
    @abstractmethod
    def get_required_config_fields() -> list[str]:
        pass

    @staticmethod
    def get_optional_config_fields() -> dict[str, any]:
        return {}

    @staticmethod
    @abstractmethod
    def get_description() -> str:
        pass

    def _get_fqdn(self) -> str:
        return self.settings.fqdn

    def _require(self, *keys) -> None:
        missing = [key for key in keys if not self.settings.get(key)]
        if missing:
            raise PermanentProviderError(
                f"{self.NAME.capitalize()} provider: missing required setting(s): {', '.join(missing)}")

    def _user_agent(self) -> str:
        return f'Python-DDNS-Updater/{self.NAME}'

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Single HTTP call bounded by the record's timeout. Transport errors and
        5xx/429 responses raise TransientProviderError, 401/403 raise
        PermanentProviderError; any other response is returned to the caller.
        """
        headers = kwargs.pop('headers', {})
        headers.setdefault('User-Agent', self._user_agent())
        self.logger.debug(f"{self.NAME.capitalize()} API Request: {method} {url}")
        try:
            response = requests.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise TransientProviderError(f"request timed out after {self.timeout}s: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransientProviderError(f"request failed: {e}") from e

        self.logger.debug(f"{self.NAME.capitalize()} API Response Status: {response.status_code}, Body: '{response.text.strip()[:500]}'")
        if response.status_code >= 500 or response.status_code == 429:
            raise TransientProviderError(f"HTTP {response.status_code}: {response.text.strip()[:200]}")
        if response.status_code in (401, 403):
            raise PermanentProviderError(f"authentication rejected (HTTP {response.status_code})")
        return response
