# /ddns-updater/ddns_updater/ip_fetcher.py
import ipaddress
import logging

import requests
import dns.exception
import dns.resolver

from .exceptions import IPResolutionError
from .models import IPVersion

DEFAULT_REQUEST_TIMEOUT = 10
DEFAULT_USER_AGENT = 'Python-DDNS-Updater/2.0'

# Fixed preference order used by the 'cycle' method.
HTTP_SERVICES = {
    'ipify': {
        IPVersion.IPV4: "https://api.ipify.org",
        IPVersion.IPV6: "https://api6.ipify.org",
        IPVersion.IPV4_OR_IPV6: "https://api64.ipify.org",
    },
    'ident': {
        IPVersion.IPV4: "https://v4.ident.me",
        IPVersion.IPV6: "https://v6.ident.me",
        IPVersion.IPV4_OR_IPV6: "https://ident.me",
    },
    'icanhazip': {
        IPVersion.IPV4: "https://ipv4.icanhazip.com",
        IPVersion.IPV6: "https://ipv6.icanhazip.com",
        IPVersion.IPV4_OR_IPV6: "https://icanhazip.com",
    },
    'seeip': {
        IPVersion.IPV4: "https://ipv4.seeip.org",
        IPVersion.IPV6: "https://ipv6.seeip.org",
        IPVersion.IPV4_OR_IPV6: "https://api.seeip.org",
    },
    'ifconfig': {
        IPVersion.IPV4: "https://ipv4.ifconfig.co/ip",
        IPVersion.IPV6: "https://ipv6.ifconfig.co/ip",
        IPVersion.IPV4_OR_IPV6: "https://ifconfig.co/ip",
    },
    'ipinfo': {
        IPVersion.IPV4: "https://ipinfo.io/ip",
        IPVersion.IPV4_OR_IPV6: "https://ipinfo.io/ip",
    },
    'amazon': {
        IPVersion.IPV4: "https://checkip.amazonaws.com",
        IPVersion.IPV4_OR_IPV6: "https://checkip.amazonaws.com",
    },
}

OPENDNS_HOSTNAME = "myip.opendns.com"
OPENDNS_RESOLVERS = {
    IPVersion.IPV4: ["208.67.222.222", "208.67.220.220"],
    IPVersion.IPV6: ["2620:119:35::35", "2620:119:53::53"],
    IPVersion.IPV4_OR_IPV6: ["208.67.222.222", "208.67.220.220"],
}

module_logger = logging.getLogger("ddns_updater.ip_fetcher")


def is_valid_ip_method(method: str) -> bool:
    method = (method or '').lower()
    return method in ('cycle', 'opendns') or method in HTTP_SERVICES or method.startswith('https://')


def validate_ip(text: str, ip_version: IPVersion) -> str | None:
    """Returns the normalized address when text is an IP of the wanted family, else None."""
    try:
        address = ipaddress.ip_address(text.strip())
    except ValueError:
        return None
    if ip_version == IPVersion.IPV4 and address.version != 4:
        return None
    if ip_version == IPVersion.IPV6 and address.version != 6:
        return None
    return str(address)


class IPFetcher:
    """
    Determines the public IP address for an address family.

    `methods` maps IPVersion -> method name ('cycle', 'opendns', a service
    name from HTTP_SERVICES or an https:// URL). Each lookup strategy is tried
    once, in order, bounded by `timeout_seconds`; the first valid address wins.
    """

    def __init__(self, methods: dict, timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT,
                 user_agent: str = DEFAULT_USER_AGENT, logger: logging.Logger = None,
                 session: requests.Session = None):
        self.methods = {IPVersion(k): v.lower() for k, v in methods.items()}
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.logger = logger or module_logger
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, global_settings, logger=None):
        return cls(
            methods={
                IPVersion.IPV4: global_settings.ipv4_method,
                IPVersion.IPV6: global_settings.ipv6_method,
                IPVersion.IPV4_OR_IPV6: global_settings.ip_method,
            },
            timeout_seconds=global_settings.http_timeout_seconds,
            logger=logger,
        )

    def _strategies(self, ip_version: IPVersion):
        method = self.methods.get(ip_version, 'cycle')
        if method == 'opendns':
            return [('dns', OPENDNS_HOSTNAME)]
        if method.startswith('https://'):
            return [('http', method)]
        if method == 'cycle':
            names = list(HTTP_SERVICES)
        else:
            names = [method]
        urls = [HTTP_SERVICES[name][ip_version] for name in names if ip_version in HTTP_SERVICES[name]]
        return [('http', url) for url in urls]

    def get_public_ip(self, ip_version: IPVersion) -> str:
        strategies = self._strategies(ip_version)
        if not strategies:
            raise IPResolutionError(f"no lookup method available for {ip_version.value}")

        errors = []
        for kind, target in strategies:
            try:
                if kind == 'dns':
                    ip = self._get_ip_from_dns(ip_version)
                else:
                    ip = self._get_ip_from_service(target, ip_version)
            except IPResolutionError as e:
                self.logger.debug(f"IP lookup via {target} failed: {e}")
                errors.append(str(e))
                continue
            self.logger.debug(f"Public {ip_version.value} address from {target}: {ip}")
            return ip

        raise IPResolutionError(
            f"failed to get public {ip_version.value} address from {len(strategies)} source(s): " + "; ".join(errors))

    def _get_ip_from_service(self, url, ip_version):
        service_name = url.split('/')[2] if '//' in url else url
        try:
            response = self.session.get(url, timeout=self.timeout_seconds,
                                        headers={'User-Agent': self.user_agent})
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise IPResolutionError(f"{service_name}: HTTP {e.response.status_code}") from e
        except requests.exceptions.RequestException as e:
            raise IPResolutionError(f"{service_name}: {e}") from e

        ip = validate_ip(response.text, ip_version)
        if ip is None:
            raise IPResolutionError(f"{service_name}: invalid {ip_version.value} response '{response.text.strip()[:60]}'")
        return ip

    def _get_ip_from_dns(self, ip_version):
        resolver = dns.resolver.Resolver(configure=False)
        resolver.nameservers = OPENDNS_RESOLVERS[ip_version]
        resolver.timeout = self.timeout_seconds
        resolver.lifetime = self.timeout_seconds
        record_type = 'AAAA' if ip_version == IPVersion.IPV6 else 'A'
        try:
            answers = resolver.resolve(OPENDNS_HOSTNAME, record_type)
        except dns.exception.DNSException as e:
            raise IPResolutionError(f"opendns: {e}") from e
        for answer in answers:
            ip = validate_ip(answer.to_text(), ip_version)
            if ip:
                return ip
        raise IPResolutionError(f"opendns: no {record_type} answer")
