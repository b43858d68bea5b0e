# /ddns-updater/ddns_updater/exceptions.py
"""
Exception hierarchy.

    DDNSUpdaterError
    ├─ ConfigError              - invalid settings, fatal at startup
    ├─ PersistenceError         - updates.json unreadable or unwritable
    ├─ IPResolutionError        - no public IP for an address family
    └─ ProviderError            - provider API call failed
       ├─ TransientProviderError  - network, timeout, 5xx; retried next cycle
       └─ PermanentProviderError  - credentials or record invalid
"""


class DDNSUpdaterError(Exception):
    pass


class ConfigError(DDNSUpdaterError):
    pass


class PersistenceError(DDNSUpdaterError):
    pass


class IPResolutionError(DDNSUpdaterError):
    pass


class ProviderError(DDNSUpdaterError):
    kind = "provider"


class TransientProviderError(ProviderError):
    kind = "transient"


class PermanentProviderError(ProviderError):
    kind = "permanent"
