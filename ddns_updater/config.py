# /ddns-updater/ddns_updater/config.py
import configparser
import logging
import os
from dataclasses import dataclass

from .exceptions import ConfigError
from .models import IPVersion, RecordSettings
from .utils import parse_duration, get_timezone
from .ip_fetcher import is_valid_ip_method

CONFIG_FILE_NAME = 'ddns_config.ini'
GLOBAL_SECTION = 'ddns'

module_logger = logging.getLogger("ddns_updater.config")

# [ddns] key -> environment variable overriding it
ENV_OVERRIDES = {
    'period': 'PERIOD',
    'ip_method': 'IP_METHOD',
    'ipv4_method': 'IPV4_METHOD',
    'ipv6_method': 'IPV6_METHOD',
    'http_timeout': 'HTTP_TIMEOUT',
    'listening_port': 'LISTENING_PORT',
    'root_url': 'ROOT_URL',
    'data_dir': 'DATADIR',
    'backup_period': 'BACKUP_PERIOD',
    'backup_directory': 'BACKUP_DIRECTORY',
    'gotify_url': 'GOTIFY_URL',
    'gotify_token': 'GOTIFY_TOKEN',
    'max_concurrent_updates': 'MAX_CONCURRENT_UPDATES',
    'default_timezone': 'TZ',
    'debug_mode': 'DEBUG_MODE',
}

GLOBAL_DEFAULTS = {
    'nick': 'default_nick',
    'period': '5m',
    'ip_method': 'cycle',
    'ipv4_method': 'cycle',
    'ipv6_method': 'cycle',
    'http_timeout': '10s',
    'listening_port': '8000',
    'root_url': '/',
    'data_dir': 'data',
    'backup_period': '0',
    'backup_directory': '',
    'gotify_url': '',
    'gotify_token': '',
    'max_concurrent_updates': '',
    'default_timezone': 'Etc/UTC',
    'debug_mode': 'false',
}

# keys of a record section that are not handed to the provider as-is
RECORD_KEYS = ('domain', 'provider', 'host', 'owner', 'ip_version', 'http_timeout', 'timezone')


@dataclass(frozen=True)
class GlobalSettings:
    nick: str
    period_seconds: int
    ip_method: str
    ipv4_method: str
    ipv6_method: str
    http_timeout_seconds: int
    listening_port: int
    root_url: str
    data_dir: str
    backup_period_seconds: int
    backup_directory: str
    gotify_url: str
    gotify_token: str
    max_concurrent_updates: int | None
    default_timezone: str
    debug_mode: bool


def _get_config_file_path(project_root_dir=None):
    if project_root_dir is None:
        project_root_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(project_root_dir, CONFIG_FILE_NAME)


def clean_value(value):
    if value is None:
        return None
    # inline '; comments' are already stripped by the parser
    return str(value).strip()


def _read_parser(config_file_path):
    parser = configparser.ConfigParser(inline_comment_prefixes=';', interpolation=None)
    if not os.path.exists(config_file_path):
        module_logger.warning(f"Config file {config_file_path} not found. Using defaults and environment only.")
        return parser
    try:
        parser.read(config_file_path, encoding='utf-8')
    except configparser.Error as e:
        raise ConfigError(f"cannot parse config file {config_file_path}: {e}") from e
    return parser


def _duration(key, raw, allow_zero=False):
    seconds = parse_duration(raw, allow_zero=allow_zero)
    if seconds is None:
        raise ConfigError(f"invalid duration for '{key}': '{raw}'")
    return seconds


def read_global_config(config_file_path=None, project_root_dir=None, environ=None):
    """Reads the [ddns] section, applies environment overrides and validates it."""
    if config_file_path is None:
        config_file_path = _get_config_file_path(project_root_dir)
    if environ is None:
        environ = os.environ

    parser = _read_parser(config_file_path)
    raw = dict(GLOBAL_DEFAULTS)
    if parser.has_section(GLOBAL_SECTION):
        for key, value in parser[GLOBAL_SECTION].items():
            raw[key] = clean_value(value)
    for key, env_name in ENV_OVERRIDES.items():
        if environ.get(env_name):
            raw[key] = environ[env_name].strip()

    for key in ('ip_method', 'ipv4_method', 'ipv6_method'):
        raw[key] = raw[key].lower()
        if not is_valid_ip_method(raw[key]):
            raise ConfigError(f"invalid {key} '{raw[key]}'")

    try:
        listening_port = int(raw['listening_port'])
    except ValueError:
        raise ConfigError(f"listening port '{raw['listening_port']}' is not a number") from None
    if not 0 < listening_port < 65536:
        raise ConfigError(f"listening port {listening_port} is out of range")

    max_concurrent = None
    if raw['max_concurrent_updates']:
        try:
            max_concurrent = int(raw['max_concurrent_updates'])
        except ValueError:
            raise ConfigError(f"max_concurrent_updates '{raw['max_concurrent_updates']}' is not a number") from None
        if max_concurrent < 1:
            raise ConfigError("max_concurrent_updates must be at least 1")

    root_url = raw['root_url'] or '/'
    if not root_url.startswith('/'):
        root_url = '/' + root_url

    data_dir = raw['data_dir']
    if project_root_dir and not os.path.isabs(data_dir):
        data_dir = os.path.join(project_root_dir, data_dir)

    return GlobalSettings(
        nick=raw['nick'],
        period_seconds=_duration('period', raw['period']),
        ip_method=raw['ip_method'],
        ipv4_method=raw['ipv4_method'],
        ipv6_method=raw['ipv6_method'],
        http_timeout_seconds=_duration('http_timeout', raw['http_timeout']),
        listening_port=listening_port,
        root_url=root_url,
        data_dir=data_dir,
        backup_period_seconds=_duration('backup_period', raw['backup_period'], allow_zero=True),
        backup_directory=raw['backup_directory'] or data_dir,
        gotify_url=raw['gotify_url'],
        gotify_token=raw['gotify_token'],
        max_concurrent_updates=max_concurrent,
        default_timezone=get_timezone(raw['default_timezone']).zone,
        debug_mode=raw['debug_mode'].lower() == 'true',
    )


def _split_hosts(section):
    hosts_value = section.get('host', section.get('owner', '@'))
    hosts = [clean_value(h) for h in clean_value(hosts_value).split(',')]
    return [h or '@' for h in hosts]


def read_config(global_settings, config_file_path=None, project_root_dir=None):
    """
    Returns the list of RecordSettings, one per (domain, host) pair, in file order.
    Raises ConfigError for invalid record sections.
    """
    if config_file_path is None:
        config_file_path = _get_config_file_path(project_root_dir)

    parser = _read_parser(config_file_path)
    records = []
    seen = set()

    for section_name in parser.sections():
        if section_name.lower() == GLOBAL_SECTION:
            continue
        section = parser[section_name]

        domain = clean_value(section.get('domain', ''))
        provider = clean_value(section.get('provider', '')).lower()
        if not domain or not provider:
            raise ConfigError(f"section [{section_name}] is missing 'domain' or 'provider'")

        try:
            ip_version = IPVersion.parse(clean_value(section.get('ip_version', 'ipv4')))
        except ValueError as e:
            raise ConfigError(f"section [{section_name}]: {e}") from None

        http_timeout_raw = clean_value(section.get('http_timeout', ''))
        http_timeout_seconds = global_settings.http_timeout_seconds
        if http_timeout_raw:
            http_timeout_seconds = _duration(f"{section_name}.http_timeout", http_timeout_raw)

        options = {key: clean_value(value) for key, value in section.items() if key not in RECORD_KEYS}
        options['http_timeout_seconds'] = http_timeout_seconds
        options['timezone'] = clean_value(section.get('timezone', global_settings.default_timezone))

        for host in _split_hosts(section):
            identity = (domain, host)
            if identity in seen:
                module_logger.warning(f"Duplicate record for domain {domain} host {host} in [{section_name}]. Ignoring it.")
                continue
            seen.add(identity)
            records.append(RecordSettings(
                domain=domain,
                host=host,
                provider=provider,
                ip_version=ip_version,
                section_name=section_name,
                options=dict(options),
            ))

    return records
