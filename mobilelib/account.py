"""
Management account settings: which subscription to act on, and how to authenticate.

Settings are read from an INI file, by default `~/.mobilectl.cnf` (or the path in the
`MOBILECTL_CONFIG` environment variable):

    [account]
    subscription = 01234567-89ab-cdef-0123-456789abcdef
    cert = ~/.mobilectl/management.pem

    [mobile]
    poll_interval = 5

Only `subscription` and `cert` are required; see `Account` for the remaining options.
"""

import configparser
import logging
import os.path
from typing import Optional, Tuple, Union
from urllib.parse import urlsplit

from .errors import ValidationError
from .plumbing import hosts


LOG = logging.getLogger(__name__)

DEFAULT_PATH = "~/.mobilectl.cnf"


class Account:
    """
    Credentials and endpoints for a single subscription.
    """

    def __init__(self, subscription: str, cert: Union[str, Tuple[str, str]],
                 management_url: str = hosts.MANAGEMENT,
                 sql_management_url: str = hosts.SQL_MANAGEMENT,
                 api_version: str = hosts.API_VERSION, poll_interval: float = hosts.POLL_INTERVAL,
                 timeout: float = hosts.TIMEOUT):
        self.subscription = subscription
        self.cert = cert
        self.management_url = management_url
        self.sql_management_url = sql_management_url
        self.api_version = api_version
        self.poll_interval = poll_interval
        self.timeout = timeout

    @staticmethod
    def authority(url: str) -> Tuple[str, Optional[int]]:
        """
        Split an endpoint URL into its host and (optional) port.
        """
        parts = urlsplit(url)
        if parts.scheme != "https" or not parts.hostname:
            raise ValidationError("Endpoint must be an https:// URL: {!r}".format(url))
        return (parts.hostname, parts.port)

    def __repr__(self):
        return "<{}: {}>".format(self.__class__.__name__, self.subscription)


def _expand(path: str) -> str:
    return os.path.expanduser(os.path.expandvars(path))


def load_account(path: Optional[str] = None, subscription: Optional[str] = None) -> Account:
    """
    Read account settings from a config file, optionally overriding the subscription.
    """
    path = _expand(path or os.getenv("MOBILECTL_CONFIG") or DEFAULT_PATH)
    parser = configparser.ConfigParser()
    if not parser.read(path):
        raise ValidationError("Missing account config file: {}".format(path))
    LOG.debug("Read account config: %s", path)
    try:
        section = parser["account"]
    except KeyError:
        raise ValidationError("Missing [account] section in {}".format(path))
    for option in ("subscription", "cert"):
        if not section.get(option) and not (option == "subscription" and subscription):
            raise ValidationError("Missing option {!r} in [account] of {}".format(option, path))
    cert: Union[str, Tuple[str, str]] = _expand(section["cert"])
    if section.get("key"):
        cert = (cert, _expand(section["key"]))
    mobile = parser["mobile"] if parser.has_section("mobile") else {}
    try:
        return Account(subscription or section["subscription"], cert,
                       management_url=section.get("management_url", hosts.MANAGEMENT),
                       sql_management_url=section.get("sql_management_url",
                                                      hosts.SQL_MANAGEMENT),
                       api_version=mobile.get("api_version", hosts.API_VERSION),
                       poll_interval=float(mobile.get("poll_interval", hosts.POLL_INTERVAL)),
                       timeout=float(mobile.get("timeout", hosts.TIMEOUT)))
    except ValueError as ex:
        raise ValidationError("Invalid [mobile] option in {}: {}".format(path, ex))
