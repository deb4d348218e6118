"""
Server scripts of a mobile service, addressed by path-like names:

- `table/<table>.<operation>`: run on table operations (`insert`, `read`, `update` or `delete`)
- `scheduler/<job>`: run by a scheduled job
- `shared/apnsFeedback`: run on push notification feedback

A `.js` suffix is accepted and ignored.
"""

import logging
import re
from typing import Any, Dict, List, NamedTuple, Optional

from ..errors import MobileError, ValidationError
from ..plumbing import mobile
from ..plumbing.channel import Context
from ..plumbing.common import Callback, Gathered, Join


LOG = logging.getLogger(__name__)

TABLE_SCRIPT = re.compile(r"^table/([^.]+)\.(insert|read|update|delete)(?:$|\.js$)")
SCHEDULER_SCRIPT = re.compile(r"^scheduler/([^.]+)(?:$|\.js$)")
SHARED_SCRIPT = re.compile(r"^shared/apnsFeedback(?:$|\.js$)")


class ScriptName(NamedTuple):
    """
    Parsed script name: a `type` of `table`, `scheduler` or `shared`, the table, job or shared
    script `name`, and for table scripts, the `operation`.
    """

    type: str
    name: str
    operation: Optional[str] = None

    @property
    def filename(self) -> str:
        """
        Default local path to save the script to, relative to the current directory.
        """
        if self.type == "table":
            return "table/{}.{}.js".format(self.name, self.operation)
        return "{}/{}.js".format(self.type, self.name)

    def __str__(self):
        return self.filename[:-len(".js")]


def parse_script_name(name: str) -> ScriptName:
    match = TABLE_SCRIPT.match(name)
    if match:
        return ScriptName("table", match.group(1), match.group(2))
    match = SCHEDULER_SCRIPT.match(name)
    if match:
        return ScriptName("scheduler", match.group(1))
    if SHARED_SCRIPT.match(name):
        return ScriptName("shared", "apnsFeedback")
    raise ValidationError("Invalid script name {!r}, must be one of table/<tableName>."
                          "{{insert|read|update|delete}}, scheduler/<jobName>, or "
                          "shared/apnsFeedback".format(name))


def get_script(ctx: Context, service: str, script: ScriptName, callback: Callback) -> None:
    """
    Fetch the source code of a script.
    """
    if script.type == "table":
        mobile.get_table_script(ctx, service, script.name, script.operation, callback)
    elif script.type == "scheduler":
        mobile.get_job_script(ctx, service, script.name, callback)
    else:
        mobile.get_apns_script(ctx, service, callback)


def set_script(ctx: Context, service: str, script: ScriptName, source: str,
               callback: Callback) -> None:
    """
    Upload the source code of a script, replacing any existing code.
    """
    if script.type == "table":
        mobile.set_table_script(ctx, service, script.name, script.operation, source, callback)
    elif script.type == "scheduler":
        mobile.set_job_script(ctx, service, script.name, source, callback)
    else:
        mobile.set_apns_script(ctx, service, source, callback)


def delete_script(ctx: Context, service: str, script: ScriptName, callback: Callback) -> None:
    """
    Remove a script.  For scheduler scripts, this removes the whole job.
    """
    if script.type == "table":
        mobile.delete_table_script(ctx, service, script.name, script.operation, callback)
    elif script.type == "scheduler":
        mobile.delete_job(ctx, service, script.name, callback)
    else:
        mobile.delete_apns_script(ctx, service, callback)


def get_all_table_scripts(ctx: Context, service: str, callback: Callback) -> None:
    """
    Collect the scripts of every table, each tagged with its `table` name.

    If some tables' scripts couldn't be fetched, the first error is reported.
    """
    def tables(error: Optional[MobileError], tables: Any = None) -> None:
        if error:
            return callback(error, None)
        if not tables:
            return callback(None, [])
        join = Join(gathered)
        for table in tables:
            mobile.get_table_scripts(ctx, service, table["name"], join.slot(table["name"]))
        join.close()

    def gathered(error: Optional[MobileError], result: Gathered) -> None:
        scripts: List[Dict[str, Any]] = []
        for table, items in sorted(result.results.items()):
            for item in items or ():
                scripts.append(dict(item, table=table))
        if result.errors:
            return callback(next(iter(result.errors.values())), None)
        callback(None, scripts)

    mobile.list_tables(ctx, service, tables)


def get_shared_scripts(ctx: Context, service: str, callback: Callback) -> None:
    def inner(error: Optional[MobileError], script: Any = None) -> None:
        if error:
            return callback(error, None)
        size = len((script or "").encode("utf-8"))
        callback(None, [{"name": "apnsFeedback", "sizeBytes": size}])

    mobile.get_apns_script(ctx, service, inner)


def list_scripts(ctx: Context, service: str, callback: Callback) -> None:
    """
    Fetch `table`, `shared` and `scheduler` scripts together.  The callback receives a `Gathered`
    value, so each group can be reported even if another failed.
    """
    join = Join(callback)
    get_all_table_scripts(ctx, service, join.slot("table"))
    get_shared_scripts(ctx, service, join.slot("shared"))
    mobile.list_jobs(ctx, service, join.slot("scheduler"))
    join.close()
