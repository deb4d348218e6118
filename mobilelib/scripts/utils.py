"""
Helpers for converting methods into scripts, and filling in arguments from the command line.
"""

from functools import wraps
from getpass import getpass
from inspect import cleandoc, signature
import logging
import sys
from typing import Any, Callable, cast, Dict, List, Optional, Union

from docopt import docopt

from ..errors import MobileError
from ..plumbing.channel import Context, context
from ..plumbing.common import Callback, Password
from ..plumbing.plan import Reporter, Step


DocOptArgs = Dict[str, Union[bool, str, List[str]]]

NoneType = type(None)


ENTRYPOINTS: List[str] = []


LOG = logging.getLogger(__name__)


def entrypoint(fn: Callable[..., Any]) -> Callable[..., Any]:
    """
    Decorator to make an entrypoint out of a generic function.

    This uses `docopt` to parse arguments according to the method docstring, and will be formatted
    with `{script}` set to the script name.  At minimum, it should contain `Usage: {script}`.

    Functions may optionally accept arguments, but they must be annotated with a recognised type in
    order to be filled in.  The following types are fixed and always available:

    - `DocOptArgs` (a `dict` of input parameters parsed from the usage line)
    - `Context` (account, HTTP session and reactor for management requests)

    Parameters annotated with `str` (or `Optional[str]`) take the value of an input parameter
    matching the variable name (the name must be declared in the usage line, either in upper case
    or surrounded by arrow brackets, e.g. `SERVICE` or `<service>`).  A `Password` parameter is
    read the same way, or prompted for if not given.

    Requests issued with the context are run once the function returns, so results must be handled
    in callbacks (see `on_success`).  An example function:

        @entrypoint
        def restart(ctx: Context, service: str):
            \"""
            Restart a mobile service.

            Usage: {script} SERVICE
            \"""
            mobile.restart_service(ctx, service, on_success(lambda result: print("Restarted")))
    """
    label = "mobile-{}-{}".format(fn.__module__.rsplit(".", 1)[-1],
                                  fn.__qualname__.rstrip("_")).replace("_", "-")

    @wraps(fn)
    def wrap(opts: Optional[DocOptArgs] = None):
        extra: Dict[str, Any] = {}
        script = "{} [--debug] [--subscription=ID]".format(label)
        if opts is None:
            doc = cleandoc(fn.__doc__.format(script=script))
            opts = docopt(doc)
        if opts.pop("--debug", False):
            logging.basicConfig(level=logging.DEBUG)
        subscription = cast(Optional[str], opts.pop("--subscription", None))
        # Detect resolvable-typed arguments and fill in their values.
        sig = signature(fn)
        wants_context = None
        for param in sig.parameters.values():
            name = param.name
            cls = param.annotation
            if cls is DocOptArgs:
                extra[name] = opts
                continue
            elif cls is Context:
                wants_context = name
                continue
            try:
                try:
                    value = cast(str, opts[name.upper()])
                except KeyError:
                    value = cast(str, opts["<{}>".format(name)])
            except KeyError:
                raise RuntimeError("Missing argument {!r}".format(name))
            optional = False
            # Unpick Optional[X] by reading the type object arguments and removing type(None).
            if getattr(cls, "__origin__", None) is Union:
                cls_args = cls.__args__
                if NoneType in cls_args:
                    optional = True
                    # NB. Union[X] for a single type X automatically resolves to X.
                    cls = Union[tuple(arg for arg in cls_args if arg is not NoneType)]
            if value is None and optional:
                extra[name] = None
            elif cls is str:
                extra[name] = value
            elif cls is Password:
                extra[name] = Password(value if value is not None else getpass())
            else:
                raise RuntimeError("Bad parameter {!r} type {!r}".format(name, cls))
        try:
            if wants_context:
                with context(subscription=subscription) as ctx:
                    extra[wants_context] = ctx
                    return fn(**extra)
            else:
                return fn(**extra)
        except MobileError as ex:
            LOG.debug("Script failed", exc_info=True)
            error(str(ex), exit=1)
    wrap.__doc__ = wrap.__doc__.format(script=label)
    # Create a console script line for setup.
    target = "{}:{}".format(fn.__module__, fn.__qualname__)
    ENTRYPOINTS.append("{}={}".format(label, target))
    return wrap


def on_success(fn: Callable[[Any], None]) -> Callback:
    """
    Build a completion callback that passes the value to a handler, or prints the error and exits.
    """
    def inner(err: Optional[MobileError], value: Any = None) -> None:
        if err:
            LOG.debug("Request failed: %r", err, exc_info=err)
            error(str(err), exit=1)
        fn(value)
    return inner


class ConsoleReporter(Reporter):
    """
    Print progress of each step of a plan as it runs.
    """

    def started(self, step: Step) -> None:
        print("{}...".format(step.progress))

    def succeeded(self, step: Step) -> None:
        print(step.success)

    def failed(self, step: Step, err: Exception) -> None:
        error("{}: {}".format(step.failure, err))


def confirm(msg: str = "Are you sure?", quiet: bool = False):
    """
    Prompt for confirmation before destructive actions, unless running quietly.
    """
    if quiet:
        return
    try:
        yn = input("{} [yN] ".format(msg))
    except (KeyboardInterrupt, EOFError):
        print()
        yn = "n"
    if yn.lower() not in ("y", "yes"):
        error("Aborted!", exit=1)


def error(msg: Optional[str] = None, *, exit: Optional[int] = None):
    """
    Print an error message and/or exit.
    """
    if msg:
        print(msg, file=sys.stderr)
    if exit is not None:
        sys.exit(exit)


def show(data: Any, indent: int = 0) -> None:
    """
    Print a decoded response as indented `key: value` lines.
    """
    pad = "  " * indent
    if isinstance(data, dict):
        for key, value in data.items():
            if isinstance(value, (dict, list)) and value:
                print("{}{}:".format(pad, key))
                show(value, indent + 1)
            else:
                print("{}{}: {}".format(pad, key, "" if value is None else value))
    elif isinstance(data, list):
        for item in data:
            if isinstance(item, (dict, list)):
                print("{}-".format(pad))
                show(item, indent + 1)
            else:
                print("{}- {}".format(pad, item))
    else:
        print("{}{}".format(pad, data))
