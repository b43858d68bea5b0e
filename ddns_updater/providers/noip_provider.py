# /ddns-updater/ddns_updater/providers/noip_provider.py
from .base_provider import BaseProvider
from ..exceptions import PermanentProviderError, TransientProviderError

# DynDNS v2 answer codes
PERMANENT_CODES = {
    "badauth": "authentication failed",
    "nohost": "hostname does not exist in this account",
    "!donator": "feature not available for this account",
    "badagent": "user agent is blocked",
    "abuse": "account blocked for abuse",
    "notfqdn": "hostname is not a fully qualified domain name",
}
TRANSIENT_CODES = {
    "911": "server side error, retry later",
    "dnserr": "DNS error on the provider side",
}


class NoipProvider(BaseProvider):
    NAME = "noip"
    API_URL = "https://dynupdate.no-ip.com/nic/update"
    MAX_USERNAME_LENGTH = 50

    def __init__(self, settings, logger):
        super().__init__(settings, logger)
        self._require('noip_username', 'noip_password')
        self.username = settings.get('noip_username')
        self.password = settings.get('noip_password')
        if self.host == '*':
            raise PermanentProviderError("Noip provider: wildcard host ('*') is not allowed.")
        if len(self.username) > self.MAX_USERNAME_LENGTH:
            raise PermanentProviderError(
                f"Noip provider: username is longer than {self.MAX_USERNAME_LENGTH} characters.")

    @staticmethod
    def get_required_config_fields():
        return ["noip_username", "noip_password", "domain"]

    @staticmethod
    def get_optional_config_fields():
        return {"host": "@"}

    @staticmethod
    def get_description():
        return "Updates DNS records on No-IP using their DynDNS API."

    def update_record(self, ip_address, record_type="A"):
        hostname = self._get_fqdn()
        response = self._request(
            "GET", self.API_URL,
            params={'hostname': hostname, 'myip': ip_address},
            auth=(self.username, self.password),
        )
        response_text = response.text.strip()
        code = response_text.split()[0].lower() if response_text else ""

        if code in PERMANENT_CODES:
            raise PermanentProviderError(f"No-IP answered '{code}': {PERMANENT_CODES[code]}")
        if code in TRANSIENT_CODES:
            raise TransientProviderError(f"No-IP answered '{code}': {TRANSIENT_CODES[code]}")
        if response.status_code != 200:
            raise TransientProviderError(f"HTTP {response.status_code}: {response_text[:200]}")
        if code not in ("good", "nochg"):
            raise TransientProviderError(f"unknown response '{response_text[:200]}'")

        parts = response_text.split()
        if len(parts) > 1 and parts[-1] != ip_address:
            raise TransientProviderError(f"No-IP set IP {parts[-1]} instead of {ip_address}")
        return f"{code}: {hostname} now points to {ip_address}"
