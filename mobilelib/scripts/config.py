"""
Scripts to read and change configuration settings of mobile services.
"""

from typing import Optional

from .utils import DocOptArgs, entrypoint, error, on_success
from ..plumbing.channel import Context
from ..tasks import config


@entrypoint
def list_(ctx: Context, service: str):
    """
    Show all configuration settings of a mobile service.

    Usage: {script} SERVICE
    """
    def done(settings):
        for key, value in settings.items():
            print("{}\t{}".format(key, value))

    config.list_settings(ctx, service, on_success(done))


@entrypoint
def get(ctx: Context, service: str, key: str):
    """
    Show a single configuration setting of a mobile service.

    Usage: {script} SERVICE KEY
    """
    def done(value):
        print(config.NOT_CONFIGURED if value is None else value)

    config.projector().get(ctx, service, key, on_success(done))


@entrypoint
def set_(opts: DocOptArgs, ctx: Context, service: str, key: str, value: Optional[str]):
    """
    Change a configuration setting of a mobile service.

    The value may be read from a file instead of passed as an argument.  For `apns`, the value is
    of the form `(dev|prod):<password>:<pkcs12 certificate file>`.

    Usage: {script} SERVICE KEY (VALUE | --file=PATH)
    """
    if opts["--file"]:
        try:
            with open(opts["--file"]) as source:
                value = source.read()
        except OSError as ex:
            error("Unable to read {}: {}".format(opts["--file"], ex.strerror), exit=1)
    config.projector().set(ctx, service, key, value,
                           on_success(lambda result: print("Setting changed")))
