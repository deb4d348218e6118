"""
Mobile service management API calls.

Every function takes a `Context`, then its parameters, then a callback receiving `(error, value)`.
Values of getters are the decoded response bodies; actions pass a `Result`.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Optional

from requests import Response

from ..errors import MobileError, ParseError, ProtocolViolation, ValidationError
from .channel import Channel, ChannelCallback, Context
from .common import Callback, Result, State
from .operations import request_id, track_operation


LOG = logging.getLogger(__name__)

SERVICE_TYPE = "Microsoft.WindowsAzure.MobileServices.MobileService"
DATABASE_TYPE = "Microsoft.WindowsAzure.SQLAzure.DataBase"
SERVER_TYPE = "Microsoft.WindowsAzure.SQLAzure.Server"

RESOURCE_TYPES = {SERVICE_TYPE: "Mobile service",
                  DATABASE_TYPE: "SQL database",
                  SERVER_TYPE: "SQL server"}
"""
Display names of resource types making up a mobile service application.
"""


def application_name(service: str) -> str:
    """
    Name of the application manager entry backing a mobile service.
    """
    return "{}mobileservice".format(service)


def _mobile(ctx: Context) -> Channel:
    return (ctx.channel()
            .with_path(ctx.account.subscription)
            .with_header("Accept", "application/json")
            .with_path("services")
            .with_path("mobileservices"))


def _service(ctx: Context, service: str) -> Channel:
    return _mobile(ctx).with_path("mobileservices").with_path(service)


def _table(ctx: Context, service: str, table: str) -> Channel:
    return _service(ctx, service).with_path("tables").with_path(table)


def _job(ctx: Context, service: str, job: str) -> Channel:
    return _service(ctx, service).with_path("scheduler").with_path("jobs").with_path(job)


def _applications(ctx: Context) -> Channel:
    return (ctx.channel()
            .with_path(ctx.account.subscription)
            .with_header("Accept", "application/xml")
            .with_path("applications"))


def _value(callback: Callback) -> ChannelCallback:
    def inner(error: Optional[MobileError], body: Any, resp: Optional[Response]) -> None:
        callback(error, None if error else body)
    return inner


def _action(callback: Callback, caller: Callable[..., Any],
            state: State = State.success) -> ChannelCallback:
    def inner(error: Optional[MobileError], body: Any, resp: Optional[Response]) -> None:
        if error:
            return callback(error, None)
        callback(None, Result(state, body, caller=caller))
    return inner


def _apply_query(channel: Channel, query: str) -> None:
    for pair in query.split("&"):
        kv = pair.split("=")
        if len(kv) != 2:
            raise ValidationError("Invalid format of query parameter: {!r}".format(pair))
        channel.with_query(kv[0], kv[1])


# Services

def get_regions(ctx: Context, callback: Callback) -> None:
    """
    List locations where mobile services can be created, the default first.
    """
    _mobile(ctx).with_path("regions").get(_value(callback))


def list_services(ctx: Context, callback: Callback) -> None:
    _mobile(ctx).with_path("mobileservices").get(_value(callback))


def get_service(ctx: Context, service: str, callback: Callback) -> None:
    _service(ctx, service).get(_value(callback))


def delete_service(ctx: Context, service: str, callback: Callback, *,
                   delete_data: bool = False) -> None:
    """
    Delete a mobile service, optionally with all data in its tables.
    """
    channel = _service(ctx, service)
    if delete_data:
        channel.with_query("deletedata", "true")
    channel.delete(_action(callback, delete_service))


def restart_service(ctx: Context, service: str, callback: Callback) -> None:
    _service(ctx, service).with_path("redeploy").post(None, _action(callback, restart_service))


def regenerate_key(ctx: Context, service: str, key_type: str, callback: Callback) -> None:
    """
    Replace the application or master key of a service; the result value holds the new keys.
    """
    if key_type not in ("application", "master"):
        return callback(ValidationError.choices("key type", key_type, ("application", "master")),
                        None)
    (_service(ctx, service)
     .with_path("regenerateKey")
     .with_query("type", key_type)
     .post(None, _action(callback, regenerate_key)))


def get_logs(ctx: Context, service: str, callback: Callback, *, query: Optional[str] = None,
             top: Optional[int] = None, entry_type: Optional[str] = None,
             continuation: Optional[str] = None) -> None:
    """
    Fetch service log entries.  A raw `query` string (`k=v&k=v`) overrides all other filters.
    """
    channel = _service(ctx, service).with_path("logs")
    if query:
        try:
            _apply_query(channel, query)
        except ValidationError as ex:
            return callback(ex, None)
    else:
        if continuation:
            channel.with_query("continuationToken", continuation)
        channel.with_query("$top", top or 10)
        if entry_type:
            channel.with_query("$filter", "Type eq '{}'".format(entry_type))
    channel.get(_value(callback))


# Scale

def get_webspace(ctx: Context, webspace: str, callback: Callback) -> None:
    """
    Fetch the scale settings of a webspace, filling in defaults for unset fields.
    """
    def inner(error: Optional[MobileError], body: Any, resp: Optional[Response]) -> None:
        if error:
            return callback(error, None)
        if not isinstance(body, dict):
            return callback(ParseError("Expected scale settings for webspace {}, got {!r}"
                                       .format(webspace, type(body).__name__)), None)
        body.setdefault("numberOfInstances", 1)
        body["computeMode"] = body.get("computeMode") or "Shared"
        body["workerSize"] = body.get("workerSize") or "Small"
        callback(None, body)

    _mobile(ctx).with_path("webspaces").with_path(webspace).get(inner)


def set_webspace(ctx: Context, webspace: str, settings: Dict[str, Any],
                 callback: Callback) -> None:
    (_mobile(ctx)
     .with_path("webspaces")
     .with_path(webspace)
     .with_header("Content-Type", "application/json")
     .post(settings, _action(callback, set_webspace)))


# Settings

def get_service_settings(ctx: Context, service: str, callback: Callback) -> None:
    _service(ctx, service).with_path("settings").get(_value(callback))


def set_service_settings(ctx: Context, service: str, settings: Dict[str, Any],
                         callback: Callback) -> None:
    (_service(ctx, service)
     .with_path("settings")
     .with_header("Content-Type", "application/json")
     .patch(settings, _action(callback, set_service_settings)))


def get_live_settings(ctx: Context, service: str, callback: Callback) -> None:
    _service(ctx, service).with_path("livesettings").get(_value(callback))


def set_live_settings(ctx: Context, service: str, settings: Dict[str, Any],
                      callback: Callback) -> None:
    (_service(ctx, service)
     .with_path("livesettings")
     .with_header("Content-Type", "application/json")
     .put(settings, _action(callback, set_live_settings)))


def get_auth_settings(ctx: Context, service: str, callback: Callback) -> None:
    """
    Fetch identity provider credentials, as a list of `{provider, appId, secret}` records.
    """
    _service(ctx, service).with_path("authsettings").get(_value(callback))


def set_auth_settings(ctx: Context, service: str, settings: List[Dict[str, Any]],
                      callback: Callback) -> None:
    (_service(ctx, service)
     .with_path("authsettings")
     .with_header("Content-Type", "application/json")
     .put(settings, _action(callback, set_auth_settings)))


def get_apns_settings(ctx: Context, service: str, callback: Callback) -> None:
    _service(ctx, service).with_path("apns").with_path("settings").get(_value(callback))


def set_apns_certificate(ctx: Context, service: str, settings: Dict[str, Any],
                         callback: Callback) -> None:
    """
    Upload a push notification certificate: `{mode, password, data}` with base64 PKCS#12 data.
    """
    (_service(ctx, service)
     .with_path("apns")
     .with_path("certificates")
     .with_header("Content-Type", "application/json")
     .post(settings, _action(callback, set_apns_certificate)))


# Tables

def list_tables(ctx: Context, service: str, callback: Callback) -> None:
    _service(ctx, service).with_path("tables").get(_value(callback))


def get_table(ctx: Context, service: str, table: str, callback: Callback) -> None:
    _table(ctx, service, table).get(_value(callback))


def create_table(ctx: Context, service: str, settings: Dict[str, Any],
                 callback: Callback) -> None:
    """
    Create a table from `{name, insert, read, update, delete}` settings.
    """
    (_service(ctx, service)
     .with_path("tables")
     .with_header("Content-Type", "application/json")
     .post(settings, _action(callback, create_table, State.created)))


def delete_table(ctx: Context, service: str, table: str, callback: Callback) -> None:
    _table(ctx, service, table).delete(_action(callback, delete_table))


def truncate_table(ctx: Context, service: str, table: str, confirm: bool,
                   callback: Callback) -> None:
    """
    Delete all rows of a table.  Without `confirm`, only report the number of rows (`rowCount`).
    """
    (_table(ctx, service, table)
     .with_path("truncate")
     .with_header("Content-Type", "application/json")
     .post({"confirm": confirm}, _value(callback)))


def get_permissions(ctx: Context, service: str, table: str, callback: Callback) -> None:
    _table(ctx, service, table).with_path("permissions").get(_value(callback))


def set_permissions(ctx: Context, service: str, table: str, permissions: Dict[str, str],
                    callback: Callback) -> None:
    (_table(ctx, service, table)
     .with_path("permissions")
     .with_header("Content-Type", "application/json")
     .put(permissions, _action(callback, set_permissions)))


def get_columns(ctx: Context, service: str, table: str, callback: Callback) -> None:
    _table(ctx, service, table).with_path("columns").get(_value(callback))


def delete_column(ctx: Context, service: str, table: str, column: str,
                  callback: Callback) -> None:
    (_table(ctx, service, table)
     .with_path("columns")
     .with_path(column)
     .delete(_action(callback, delete_column)))


def create_index(ctx: Context, service: str, table: str, column: str,
                 callback: Callback) -> None:
    (_table(ctx, service, table)
     .with_path("indexes")
     .with_path(column)
     .put(None, _action(callback, create_index, State.created)))


def delete_index(ctx: Context, service: str, table: str, column: str,
                 callback: Callback) -> None:
    (_table(ctx, service, table)
     .with_path("indexes")
     .with_path(column)
     .delete(_action(callback, delete_index)))


def get_data(ctx: Context, service: str, table: str, callback: Callback, *,
             query: Optional[str] = None, top: Optional[int] = None,
             skip: Optional[int] = None) -> None:
    """
    Read rows from a table.  A raw `query` string (`k=v&k=v`) overrides paging options.
    """
    channel = _table(ctx, service, table).with_path("data")
    if query:
        try:
            _apply_query(channel, query)
        except ValidationError as ex:
            return callback(ex, None)
    else:
        channel.with_query("$top", top or 10)
        if skip:
            channel.with_query("$skip", skip)
    channel.get(_value(callback))


# Scripts

def get_table_scripts(ctx: Context, service: str, table: str, callback: Callback) -> None:
    _table(ctx, service, table).with_path("scripts").get(_value(callback))


def get_table_script(ctx: Context, service: str, table: str, operation: str,
                     callback: Callback) -> None:
    (_table(ctx, service, table)
     .with_path("scripts")
     .with_path(operation)
     .with_path("code")
     .get(_value(callback)))


def set_table_script(ctx: Context, service: str, table: str, operation: str, script: str,
                     callback: Callback) -> None:
    (_table(ctx, service, table)
     .with_path("scripts")
     .with_path(operation)
     .with_path("code")
     .with_header("Content-Type", "text/plain")
     .put(script, _action(callback, set_table_script)))


def delete_table_script(ctx: Context, service: str, table: str, operation: str,
                        callback: Callback) -> None:
    (_table(ctx, service, table)
     .with_path("scripts")
     .with_path(operation)
     .delete(_action(callback, delete_table_script)))


def get_apns_script(ctx: Context, service: str, callback: Callback) -> None:
    (_service(ctx, service)
     .with_path("apns")
     .with_path("scripts")
     .with_path("feedback")
     .get(_value(callback)))


def set_apns_script(ctx: Context, service: str, script: str, callback: Callback) -> None:
    (_service(ctx, service)
     .with_path("apns")
     .with_path("scripts")
     .with_path("feedback")
     .with_header("Content-Type", "text/plain")
     .put(script, _action(callback, set_apns_script)))


def delete_apns_script(ctx: Context, service: str, callback: Callback) -> None:
    (_service(ctx, service)
     .with_path("apns")
     .with_path("scripts")
     .with_path("feedback")
     .delete(_action(callback, delete_apns_script)))


# Scheduled jobs

def list_jobs(ctx: Context, service: str, callback: Callback) -> None:
    _service(ctx, service).with_path("scheduler").with_path("jobs").get(_value(callback))


def get_job(ctx: Context, service: str, job: str, callback: Callback) -> None:
    _job(ctx, service, job).get(_value(callback))


def create_job(ctx: Context, service: str, job: Dict[str, Any], callback: Callback) -> None:
    (_service(ctx, service)
     .with_path("scheduler")
     .with_path("jobs")
     .with_header("Content-Type", "application/json")
     .post(job, _action(callback, create_job, State.created)))


def set_job(ctx: Context, service: str, name: str, job: Dict[str, Any],
            callback: Callback) -> None:
    (_job(ctx, service, name)
     .with_header("Content-Type", "application/json")
     .put(job, _action(callback, set_job)))


def delete_job(ctx: Context, service: str, job: str, callback: Callback) -> None:
    _job(ctx, service, job).delete(_action(callback, delete_job))


def get_job_script(ctx: Context, service: str, job: str, callback: Callback) -> None:
    _job(ctx, service, job).with_path("script").get(_value(callback))


def set_job_script(ctx: Context, service: str, job: str, script: str,
                   callback: Callback) -> None:
    (_job(ctx, service, job)
     .with_path("script")
     .with_header("Content-Type", "text/plain")
     .put(script, _action(callback, set_job_script)))


# Applications

def get_application(ctx: Context, service: str, callback: Callback) -> None:
    """
    Fetch the application manager description of a mobile service and its SQL resources.
    """
    (_applications(ctx)
     .with_path(application_name(service))
     .with_header("Content-Type", "application/xml")
     .get(_value(callback)))


def _tracked(ctx: Context, callback: Callback, caller: Callable[..., Any],
             state: State) -> ChannelCallback:
    # Wait for the operation started by a request before reporting its result.
    name = caller.__name__

    def inner(error: Optional[MobileError], body: Any, resp: Optional[Response]) -> None:
        if error:
            LOG.debug("%s rejected: %r", name, error)
            return callback(error, None)
        operation = request_id(resp)
        if not operation:
            return callback(ProtocolViolation("No operation ID returned for {}".format(name)),
                            None)
        LOG.debug("%s started operation %s", name, operation)

        def done(error: Optional[MobileError], result: Any = None) -> None:
            if error:
                return callback(error, None)
            callback(None, Result(state, operation, caller=caller))

        track_operation(ctx, operation, done)
    return inner


def create_application(ctx: Context, payload: str, callback: Callback) -> None:
    """
    Submit an application definition (see `tasks.service.render_application`), and wait for its
    provisioning operation to complete.
    """
    (_applications(ctx)
     .with_header("Content-Type", "application/xml")
     .post(payload, _tracked(ctx, callback, create_application, State.created)))


def delete_application(ctx: Context, service: str, callback: Callback) -> None:
    """
    Remove the application manager entry of a mobile service, and wait for it to complete.
    """
    (_applications(ctx)
     .with_path(application_name(service))
     .with_header("Content-Type", "application/xml")
     .delete(_tracked(ctx, callback, delete_application, State.success)))


def delete_sql_server(ctx: Context, server: str, callback: Callback) -> None:
    """
    Delete a SQL server and all of its databases.
    """
    (ctx.channel(ctx.account.sql_management_url)
     .with_path(ctx.account.subscription)
     .with_path("services")
     .with_path("sqlservers")
     .with_path("servers")
     .with_path(server)
     .with_header("Accept", "application/xml")
     .delete(_action(callback, delete_sql_server)))


def _failure_message(code: str) -> str:
    match = re.search(r"<Message>([^<]*)</Message>", code)
    return match.group(1) if match else code


def flatten_application(description: Dict[str, Any]) -> Dict[str, Any]:
    """
    Summarise an application description as its state and a flat list of resources, each with
    `TypeView` and `NameView` display fields, and an `Error` where provisioning failed.
    """
    flat = {"State": description.get("State"),
            "Name": description.get("Name"),
            "Label": description.get("Label"),
            "Resources": []}
    for group, key in (("InternalResources", "InternalResource"),
                       ("ExternalResources", "ExternalResource")):
        container = description.get(group) or {}
        resources = container.get(key) if isinstance(container, dict) else None
        if isinstance(resources, dict):
            resources = [resources]
        for resource in resources or ():
            item = dict(resource)
            item["TypeView"] = RESOURCE_TYPES.get(item.get("Type"))
            item["NameView"] = item.get("Label") or item.get("Name")
            if isinstance(item.get("FailureCode"), str):
                item["Error"] = _failure_message(item["FailureCode"])
            flat["Resources"].append(item)
    return flat
