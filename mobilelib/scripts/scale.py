"""
Scripts to inspect and change the scale of mobile services.
"""

from .utils import DocOptArgs, entrypoint, error, on_success
from ..plumbing.channel import Context
from ..tasks import service as tasks


def _print_webspace(webspace):
    mode = webspace["computeMode"]
    print("computeMode: {}".format(tasks.COMPUTE_MODE_NAMES.get(mode, mode)))
    print("numberOfInstances: {}".format(webspace["numberOfInstances"]))


@entrypoint
def show_(ctx: Context, service: str):
    """
    Show the compute mode and number of instances of a mobile service.

    Usage: {script} SERVICE
    """
    def done(result):
        _print_webspace(result.value)

    tasks.get_scale(ctx, service, callback=on_success(done))


@entrypoint
def change(opts: DocOptArgs, ctx: Context, service: str):
    """
    Change the compute mode and/or number of instances of a mobile service.

    Usage: {script} [--mode=MODE] [--instances=N] SERVICE

    Options:
        --mode=MODE         Free or Reserved
        --instances=N       number of instances, only more than 1 in Reserved mode
    """
    if not opts["--mode"] and not opts["--instances"]:
        error("Specify at least one of --mode and --instances", exit=1)

    def done(result):
        if result:
            print("Scale settings changed")
        else:
            print("Current scale settings already match, no changes made")
        _print_webspace(result.value)

    tasks.change_scale(ctx, service, opts["--mode"], opts["--instances"],
                       callback=on_success(done))
