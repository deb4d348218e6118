"""
Flat configuration keys of a mobile service, backed by its settings resources.
"""

import base64
import logging
import re
from typing import Any, Dict, Optional

from ..errors import MobileError, ParseError, ValidationError
from ..plumbing import mobile
from ..plumbing.channel import Context
from ..plumbing.common import Callback, Gathered, Join, Result, State
from ..plumbing.settings import parse_bool, Projection, SettingsProjector


LOG = logging.getLogger(__name__)

NOT_CONFIGURED = "Not configured"

UNAVAILABLE = "Unable to obtain the value of this setting"

AUTH_PROVIDERS = ("facebook", "twitter", "google")

AUTH_TEMPLATE = {"appId": "", "secret": ""}
"""
Defaults for a provider record created by setting one of its credentials.
"""

APNS_FORMAT = re.compile(r"^(dev|prod):((?::{2}|[^:])*):(.+)")


def parse_apns(value: str) -> Dict[str, str]:
    """
    Parse a push notification setting of the form `(dev|prod):<password>:<certificate file>`, with
    any colons in the password doubled, into a certificate upload request.
    """
    match = APNS_FORMAT.match(value or "")
    if not match:
        raise ValidationError("The value of the apns setting must be in the format "
                              "(dev|prod):<password>:<pkcs12CertificateFile>, e.g. "
                              "dev:abc!123:./mycertificate.pfx.  If the password contains : "
                              "(colon) characters, they must be escaped as :: (double colon).")
    mode, password, path = match.groups()
    password = password.replace("::", ":")
    if ":" in password:
        LOG.warning("Password was unescaped to contain a colon")
    try:
        with open(path, "rb") as cert:
            data = base64.b64encode(cert.read()).decode("ascii")
    except OSError as ex:
        raise ValidationError("Unable to read certificate file {}: {}".format(path, ex.strerror))
    return {"mode": mode, "password": password, "data": data}


class ApnsProjection(Projection):
    """
    Push notification settings: reading reports the mode, whilst writing uploads a new certificate
    as a whole rather than patching the current settings.
    """

    def __init__(self):
        super().__init__(mobile.get_apns_settings, mobile.set_apns_certificate, "mode",
                         parse=parse_apns)

    def set(self, ctx: Context, service: str, value: Any, callback: Callback) -> None:
        try:
            settings = self.parse(value)
        except ValidationError as ex:
            return callback(ex, None)

        def written(error: Optional[MobileError], result: Any = None):
            if error:
                return callback(error, None)
            callback(None, Result(State.success, settings["mode"],
                                  caller=SettingsProjector.set))

        self.setter(ctx, service, settings, written)


def projector() -> SettingsProjector:
    """
    Build the table of supported configuration keys.
    """
    projections = {
        "dynamicSchemaEnabled": Projection(mobile.get_service_settings,
                                           mobile.set_service_settings,
                                           "dynamicSchemaEnabled", parse=parse_bool),
        "microsoftAccountClientSecret": Projection(mobile.get_live_settings,
                                                   mobile.set_live_settings, "clientSecret"),
        "microsoftAccountClientId": Projection(mobile.get_live_settings,
                                               mobile.set_live_settings, "clientID"),
        "microsoftAccountPackageSID": Projection(mobile.get_live_settings,
                                                 mobile.set_live_settings, "packageSID"),
    }
    for provider in AUTH_PROVIDERS:
        for suffix, subfield in (("ClientId", "appId"), ("ClientSecret", "secret")):
            projections[provider + suffix] = Projection(mobile.get_auth_settings,
                                                        mobile.set_auth_settings, provider,
                                                        subfield, template=AUTH_TEMPLATE)
    projections["apns"] = ApnsProjection()
    return SettingsProjector(projections)


def _display(projection: Projection, gathered: Gathered) -> str:
    name = projection.getter.__name__
    if name in gathered.errors or name not in gathered.results:
        return UNAVAILABLE
    try:
        value = projection.extract(gathered.results[name])
    except ParseError:
        return UNAVAILABLE
    if value is None or value == "":
        return NOT_CONFIGURED
    elif isinstance(value, bool):
        return str(value).lower()
    else:
        return str(value)


def list_settings(ctx: Context, service: str, callback: Callback,
                  settings: Optional[SettingsProjector] = None) -> None:
    """
    Fetch all configuration keys of a service, as display strings.

    Each settings resource is fetched once, all at the same time.  Keys of a resource that
    couldn't be fetched are reported as `UNAVAILABLE` rather than failing the whole listing.
    """
    settings = settings or projector()
    getters = {}
    for key in settings.keys:
        getter = settings.projection(key).getter
        getters[getter.__name__] = getter

    def gathered(error: Optional[MobileError], result: Gathered) -> None:
        for name, ex in result.errors.items():
            LOG.debug("Unable to fetch %s of %s: %s", name, service, ex)
        callback(None, {key: _display(settings.projection(key), result)
                        for key in settings.keys})

    join = Join(gathered)
    for name, getter in getters.items():
        getter(ctx, service, join.slot(name))
    join.close()
