"""
Scripts to download and upload server scripts of mobile services.

Script names take the form `table/<table>.<operation>`, `scheduler/<job>` or
`shared/apnsFeedback`.
"""

import os
from typing import Optional

from .utils import confirm, DocOptArgs, entrypoint, error, on_success
from ..errors import ValidationError
from ..plumbing.channel import Context
from ..tasks import scripts


def _parse(name: str) -> scripts.ScriptName:
    try:
        return scripts.parse_script_name(name)
    except ValidationError as ex:
        error(str(ex), exit=1)


@entrypoint
def list_(ctx: Context, service: str):
    """
    List table, shared and scheduled job scripts of a mobile service.

    Usage: {script} SERVICE
    """
    def done(gathered):
        found = gathered.results
        if "table" not in found:
            error("Unable to get table scripts")
        elif not found["table"]:
            print("There are no table scripts")
        else:
            print("Table scripts:")
            for item in found["table"]:
                print("  table/{}.{}\t{}".format(item["table"], item.get("operation"),
                                                 item.get("sizeBytes")))
        if "shared" not in found:
            error("Unable to get shared scripts")
        else:
            print("Shared scripts:")
            for item in found["shared"]:
                print("  shared/{}\t{}".format(item["name"], item["sizeBytes"]))
        if "scheduler" not in found:
            error("Unable to get scheduled job scripts")
        elif not found["scheduler"]:
            print("There are no scheduled job scripts")
        else:
            print("Scheduled job scripts:")
            for item in found["scheduler"]:
                print("  scheduler/{}\t{}".format(item.get("name"), item.get("status")))

    scripts.list_scripts(ctx, service, on_success(done))


@entrypoint
def download(opts: DocOptArgs, ctx: Context, service: str, name: str, output: Optional[str]):
    """
    Save a script to a file, by default under the current directory (e.g. `table/todo.insert.js`).

    Usage: {script} [--override] SERVICE NAME [OUTPUT]
    """
    script = _parse(name)
    path = output or script.filename

    def done(source):
        if os.path.exists(path) and not opts["--override"]:
            error("File {} already exists, use --override to replace it".format(path), exit=1)
        folder = os.path.dirname(path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        with open(path, "w") as target:
            target.write(source or "")
        print("Saved script to {}".format(path))

    scripts.get_script(ctx, service, script, on_success(done))


@entrypoint
def upload(ctx: Context, service: str, name: str, source: Optional[str]):
    """
    Upload a script from a file, by default under the current directory (e.g.
    `table/todo.insert.js`).

    Usage: {script} SERVICE NAME [SOURCE]
    """
    script = _parse(name)
    path = source or script.filename
    try:
        with open(path) as f:
            code = f.read()
    except OSError as ex:
        error("Unable to read {}: {}".format(path, ex.strerror), exit=1)
    scripts.set_script(ctx, service, script, code,
                       on_success(lambda result: print("Uploaded {}".format(script))))


@entrypoint
def delete(opts: DocOptArgs, ctx: Context, service: str, name: str):
    """
    Delete a script.  Deleting a scheduler script deletes its job.

    Usage: {script} [--quiet] SERVICE NAME
    """
    script = _parse(name)
    confirm("Delete script {}?".format(script), opts["--quiet"])
    scripts.delete_script(ctx, service, script,
                          on_success(lambda result: print("Deleted {}".format(script))))
