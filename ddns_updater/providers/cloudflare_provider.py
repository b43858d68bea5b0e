# /ddns-updater/ddns_updater/providers/cloudflare_provider.py
from .base_provider import BaseProvider
from ..exceptions import PermanentProviderError, TransientProviderError


class CloudflareProvider(BaseProvider):
    NAME = "cloudflare"
    API_BASE_URL = "https://api.cloudflare.com/client/v4"

    def __init__(self, settings, logger):
        super().__init__(settings, logger)
        self.api_token = settings.get('cloudflare_token')
        self.api_key = settings.get('cloudflare_api_key')
        self.email = settings.get('cloudflare_email')
        self.zone_id = settings.get('cloudflare_zone_id')
        self.record_id = settings.get('cloudflare_record_id')
        self.proxied = str(settings.get('proxied', 'false')).lower() == 'true'

        try:
            self.ttl = int(settings.get('ttl', 1))
        except ValueError:
            raise PermanentProviderError(f"Cloudflare provider: invalid ttl '{settings.get('ttl')}'") from None
        if self.ttl != 1 and self.ttl < 60:
            raise PermanentProviderError(f"Cloudflare provider: ttl {self.ttl} must be 1 (auto) or at least 60")

        if self.api_token:
            if self.api_key or self.email:
                self.logger.info("Cloudflare provider: API token found, ignoring global API key and email.")
            self.api_key = None
            self.email = None
        elif not (self.api_key and self.email):
            raise PermanentProviderError(
                "Cloudflare provider: either 'cloudflare_token' or both "
                "'cloudflare_api_key' and 'cloudflare_email' must be set.")

        self._require('cloudflare_zone_id')

    @staticmethod
    def get_required_config_fields():
        return ["cloudflare_zone_id"]

    @staticmethod
    def get_optional_config_fields():
        return {
            "cloudflare_token": None,
            "cloudflare_api_key": None,
            "cloudflare_email": None,
            "cloudflare_record_id": None,
            "proxied": False,
            "ttl": 1,
        }

    @staticmethod
    def get_description():
        return "Updates DNS records on Cloudflare using their API v4. Supports API Token (recommended) or Global API Key + Email."

    def _build_headers(self):
        headers = {'Content-Type': 'application/json', 'Accept': 'application/json'}
        if self.api_token:
            headers['Authorization'] = f'Bearer {self.api_token}'
        else:
            headers['X-Auth-Email'] = self.email
            headers['X-Auth-Key'] = self.api_key
        return headers

    def _api(self, method, endpoint_path, params=None, payload=None):
        response = self._request(method, f"{self.API_BASE_URL}{endpoint_path}",
                                 params=params, json=payload, headers=self._build_headers())
        try:
            body = response.json()
        except ValueError:
            raise TransientProviderError(
                f"non JSON response (HTTP {response.status_code}): {response.text.strip()[:200]}") from None

        if response.status_code >= 400 or body.get("success") is not True:
            errors = "; ".join(f"Error {err.get('code')}: {err.get('message')}" for err in body.get("errors", []))
            message = f"HTTP {response.status_code}: {errors or 'no error details'}"
            if response.status_code in (400, 404):
                raise PermanentProviderError(message)
            raise TransientProviderError(message)
        return body

    def _find_record(self, record_name, record_type):
        body = self._api("GET", f"/zones/{self.zone_id}/dns_records",
                         params={'type': record_type, 'name': record_name, 'page': 1, 'per_page': 2})
        results = body.get("result") or []
        if len(results) > 1:
            raise PermanentProviderError(f"multiple {record_type} records found for '{record_name}'")
        return results[0] if results else None

    def update_record(self, ip_address, record_type="A"):
        record_name = self._get_fqdn()
        payload = {
            'type': record_type,
            'name': record_name,
            'content': ip_address,
            'proxied': self.proxied,
            'ttl': self.ttl,
        }

        if self.record_id:
            return self._put_record(self.record_id, record_name, ip_address, payload)

        existing = self._find_record(record_name, record_type)
        if existing is None:
            self.logger.info(f"Cloudflare: creating {record_type} record '{record_name}' with IP {ip_address}")
            body = self._api("POST", f"/zones/{self.zone_id}/dns_records", payload=payload)
            return f"created record {body.get('result', {}).get('id', '')} for '{record_name}' with IP {ip_address}"

        if existing.get("content") == ip_address and existing.get("proxied", self.proxied) == self.proxied:
            return f"IP address {ip_address} for '{record_name}' is already up to date"

        self.logger.info(f"Cloudflare: updating record {existing.get('id')} from {existing.get('content')} to {ip_address}")
        return self._put_record(existing.get('id'), record_name, ip_address, payload)

    def _put_record(self, record_id, record_name, ip_address, payload):
        body = self._api("PUT", f"/zones/{self.zone_id}/dns_records/{record_id}", payload=payload)
        applied = body.get("result", {}).get("content")
        if applied and applied != ip_address:
            raise TransientProviderError(f"record updated but Cloudflare reports content {applied} instead of {ip_address}")
        return f"updated '{record_name}' to {ip_address}"
