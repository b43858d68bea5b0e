# /ddns-updater/ddns_updater/providers/custom_provider.py
import re
from urllib.parse import urlparse, urlunparse, parse_qs, urlencode

from .base_provider import BaseProvider
from ..exceptions import PermanentProviderError, TransientProviderError


class CustomProvider(BaseProvider):
    NAME = "custom"

    def __init__(self, settings, logger):
        super().__init__(settings, logger)
        self._require('custom_url', 'custom_success_regex')
        self.update_url_template = settings.get('custom_url')
        self.ipv4_key = settings.get('custom_ipv4_key')
        self.ipv6_key = settings.get('custom_ipv6_key')

        if urlparse(self.update_url_template).scheme != 'https':
            raise PermanentProviderError("Custom provider: 'custom_url' must use the https scheme.")
        try:
            self.success_regex = re.compile(settings.get('custom_success_regex'))
        except re.error as e:
            raise PermanentProviderError(f"Custom provider: invalid 'custom_success_regex': {e}") from None

    @staticmethod
    def get_required_config_fields():
        return ["custom_url", "custom_success_regex"]

    @staticmethod
    def get_optional_config_fields():
        return {"custom_ipv4_key": None, "custom_ipv6_key": None}

    @staticmethod
    def get_description():
        return "Updates DNS records using a user-defined custom URL and success regex."

    def _build_update_url(self, ip_address, record_type):
        """
        Fills the {ip}, {domain}, {host} and {hostname} placeholders of the
        URL template, then sets the configured IPv4/IPv6 query key.
        """
        try:
            url = self.update_url_template.format(
                ip=ip_address, domain=self.domain, host=self.host, hostname=self._get_fqdn())
        except (KeyError, IndexError) as e:
            raise PermanentProviderError(f"unknown placeholder in custom_url: {e}") from None

        parsed_url = urlparse(url)
        query_params = parse_qs(parsed_url.query, keep_blank_values=True)
        ip_key = self.ipv6_key if record_type == "AAAA" else self.ipv4_key
        if ip_key:
            query_params[ip_key] = [ip_address]
        return urlunparse(parsed_url._replace(query=urlencode(query_params, doseq=True)))

    def update_record(self, ip_address, record_type="A"):
        response = self._request("GET", self._build_update_url(ip_address, record_type))
        response_text = response.text.strip()
        if response.status_code != 200:
            raise PermanentProviderError(f"HTTP {response.status_code}: {response_text[:200]}")
        if not self.success_regex.search(response_text):
            raise TransientProviderError(f"response did not match success regex: '{response_text[:200]}'")
        return f"custom URL accepted IP {ip_address}"
