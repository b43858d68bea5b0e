# /ddns-updater/ddns_updater/providers/duckdns_provider.py
import re

from .base_provider import BaseProvider
from ..exceptions import PermanentProviderError, TransientProviderError
from ..ip_fetcher import validate_ip
from ..models import IPVersion


class DuckdnsProvider(BaseProvider):
    NAME = "duckdns"
    API_ENDPOINT = "https://www.duckdns.org/update"
    # DuckDNS tokens are UUIDs: 8-4-4-4-12 hex digits
    TOKEN_REGEX = re.compile(r"^[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}$", re.IGNORECASE)
    ETLD = "duckdns.org"

    def __init__(self, settings, logger):
        super().__init__(settings, logger)
        self.token = settings.get('duckdns_token')
        self._require('duckdns_token')
        if not self.TOKEN_REGEX.match(self.token):
            raise PermanentProviderError("Duckdns provider: 'duckdns_token' format is invalid (should be a UUID).")

        # domain is either 'name' or 'name.duckdns.org'; only one label is allowed
        subdomain = self.domain[:-len(self.ETLD) - 1] if self.domain.endswith(f".{self.ETLD}") else self.domain
        if not subdomain or '.' in subdomain:
            raise PermanentProviderError(
                f"Duckdns provider: invalid domain '{self.domain}', expected 'yoursubdomain.{self.ETLD}'.")
        if self.host not in ('@', ''):
            raise PermanentProviderError("Duckdns provider: host must be '@', the whole subdomain is updated.")
        self.subdomain = subdomain

    @staticmethod
    def get_required_config_fields():
        return ["duckdns_token", "domain"]

    @staticmethod
    def get_description():
        return "Updates DNS records on DuckDNS (free dynamic DNS service)."

    def update_record(self, ip_address, record_type="A"):
        params = {
            'verbose': 'true',
            'domains': self.subdomain,
            'token': self.token,
        }
        if record_type == "AAAA":
            params['ipv6'] = ip_address
        else:
            params['ip'] = ip_address

        response = self._request("GET", self.API_ENDPOINT, params=params)
        response_text = response.text.strip()

        # verbose body: "OK\n<ipv4>\n<ipv6>\nUPDATED|NOCHANGE" or "KO"
        lines = response_text.splitlines()
        if response.status_code != 200:
            raise TransientProviderError(f"HTTP {response.status_code}: {response_text[:200]}")
        if not lines:
            raise TransientProviderError("empty response")
        if lines[0].upper() == "KO":
            raise PermanentProviderError("DuckDNS answered KO (bad token or domain)")
        if lines[0].upper() != "OK":
            raise TransientProviderError(f"unknown response '{response_text[:200]}'")

        ip_version = IPVersion.IPV6 if record_type == "AAAA" else IPVersion.IPV4
        returned_ips = [validate_ip(line, ip_version) for line in lines[1:]]
        if ip_address not in returned_ips:
            raise TransientProviderError(f"DuckDNS answered OK but did not confirm IP {ip_address}: '{response_text}'")
        return f"updated {self.subdomain}.{self.ETLD} to {ip_address}"
