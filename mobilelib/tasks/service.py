"""
Mobile services: creation with backing SQL resources, inspection, scaling and removal.
"""

import base64
from functools import partial
import json
import logging
import os.path
import re
from typing import Any, Dict, List, Optional
import uuid

from jinja2 import Environment, FileSystemLoader

from ..errors import MobileError, ProtocolViolation, ServiceUnhealthy, ValidationError
from ..plumbing import hosts, mobile
from ..plumbing.channel import Context
from ..plumbing.common import Callback, Collect, Gathered, Join, Password, Result
from ..plumbing.plan import Plan, Reporter


LOG = logging.getLogger(__name__)

ENV = Environment(loader=FileSystemLoader(os.path.join(os.path.dirname(__file__), "templates")),
                  autoescape=True, trim_blocks=True, lstrip_blocks=True)

SCHEMA_VERSION = "2012-05.1.0"
SERVICE_VERSION = "2012-05-21.1.0"

COMPUTE_MODES = {"Free": "Shared", "Reserved": "Dedicated"}
"""
Mapping of compute modes as presented to users, to their names in the management API.
"""

COMPUTE_MODE_NAMES = {model: view for view, model in COMPUTE_MODES.items()}

PASSWORD_CLASSES = (r"[A-Z]", r"[a-z]", r"[0-9]", r"[^A-Za-z0-9]")


def check_username(username: str) -> None:
    if not username:
        raise ValidationError("SQL administrator user name must be specified")


def is_password_valid(username: str, password: Password) -> bool:
    """
    Test a SQL administrator password against the provider's complexity rules: more than eight
    characters, not containing the user name, and using at least three of upper case, lower case,
    digits and symbols.
    """
    value = str(password)
    if len(value) <= 8 or (username and username in value):
        return False
    return sum(1 for pattern in PASSWORD_CLASSES if re.search(pattern, value)) >= 3


def _sql_uri(ctx: Context, server: str, database: Optional[str] = None) -> str:
    uri = "{}/{}/services/sqlservers/servers/{}".format(hosts.SQL_RESOURCE,
                                                     ctx.account.subscription, server)
    if database:
        uri = "{}/databases/{}".format(uri, database)
    return uri


def provisioning_spec(ctx: Context, service: str, username: str, password: Password,
                      location: str, sql_location: Optional[str] = None,
                      sql_server: Optional[str] = None,
                      sql_db: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the application manager spec of a mobile service, either creating a new SQL server and
    database or referencing existing ones.
    """
    server_ref = "ZumoSqlServer_{}".format(uuid.uuid4().hex)
    db_ref = "ZumoSqlDatabase_{}".format(uuid.uuid4().hex)
    if sql_server:
        server: Dict[str, Any] = {"Name": server_ref,
                                  "Type": mobile.SERVER_TYPE,
                                  "URI": _sql_uri(ctx, sql_server)}
    else:
        server = {"ProvisioningParameters": {"AdministratorLogin": username,
                                             "AdministratorLoginPassword": str(password),
                                             "Location": sql_location or location},
                  "ProvisioningConfigParameters": {
                      "FirewallRules": [{"Name": "AllowAllWindowsAzureIps",
                                         "StartIPAddress": "0.0.0.0",
                                         "EndIPAddress": "0.0.0.0"}]},
                  "Version": "1.0",
                  "Name": server_ref,
                  "Type": mobile.SERVER_TYPE}
    if sql_db:
        database: Dict[str, Any] = {"Name": db_ref,
                                    "Type": mobile.DATABASE_TYPE,
                                    "URI": _sql_uri(ctx, sql_server, sql_db)}
    else:
        database = {"ProvisioningParameters": {
                        "Name": "{}_db".format(service),
                        "Edition": "WEB",
                        "MaxSizeInGB": "1",
                        "DBServer": {"ResourceReference": "{}.Name".format(server_ref)},
                        "CollationName": "SQL_Latin1_General_CP1_CI_AS"},
                    "Version": "1.0",
                    "Name": db_ref,
                    "Type": mobile.DATABASE_TYPE}
    zumo = {"ProvisioningParameters": {"Name": service, "Location": location},
            "ProvisioningConfigParameters": {
                "Server": {"StringConcat": [{"ResourceReference": "{}.Name".format(server_ref)},
                                            hosts.SQL_HOSTNAME_SUFFIX]},
                "Database": {"ResourceReference": "{}.Name".format(db_ref)},
                "AdministratorLogin": username,
                "AdministratorLoginPassword": str(password)},
            "Version": SERVICE_VERSION,
            "Name": "ZumoMobileService",
            "Type": mobile.SERVICE_TYPE}
    spec: Dict[str, Any] = {"SchemaVersion": SCHEMA_VERSION,
                            "Location": "West US",
                            "ExternalResources": {},
                            "InternalResources": {"ZumoMobileService": zumo}}
    spec["ExternalResources" if sql_server else "InternalResources"][server_ref] = server
    spec["ExternalResources" if sql_db else "InternalResources"][db_ref] = database
    return spec


def render_application(service: str, spec: Dict[str, Any]) -> str:
    """
    Render the XML payload submitted to the application manager, embedding the provisioning spec.
    """
    encoded = base64.b64encode(json.dumps(spec).encode("utf-8")).decode("ascii")
    return ENV.get_template("application.xml.j2").render(name=mobile.application_name(service),
                                                         label=service, description=service,
                                                         spec=encoded)


@Result.collect
def default_location(ctx: Context) -> Collect[str]:
    """
    Pick the provider's preferred region, the first in the list of available regions.
    """
    regions = yield partial(mobile.get_regions, ctx)
    if not isinstance(regions, list) or not regions or not isinstance(regions[0], dict) \
            or not regions[0].get("region"):
        raise ProtocolViolation("Unable to determine the default mobile service location")
    return regions[0]["region"]


@Result.collect
def create_service(ctx: Context, service: str, username: str, password: Password,
                   location: Optional[str] = None, sql_location: Optional[str] = None,
                   sql_server: Optional[str] = None,
                   sql_db: Optional[str] = None) -> Collect[Dict[str, Any]]:
    """
    Create a mobile service along with its SQL server and database, and wait for provisioning.

    Pass `sql_server` (and optionally `sql_db`) to reuse existing SQL resources.  The result value
    is the flattened application description (see `mobile.flatten_application`); if provisioning
    leaves the application in any state but `Healthy`, `ServiceUnhealthy` is raised instead.
    """
    check_username(username)
    if not is_password_valid(username, password):
        raise ValidationError("Password must be more than 8 characters long, must not contain "
                              "the user name, and must contain characters from at least 3 of "
                              "the following groups: upper case letters, lower case letters, "
                              "numbers, symbols")
    if sql_db and not sql_server:
        raise ValidationError("To use an existing database, you must specify an existing "
                              "SQL server")
    if not location:
        located = yield partial(default_location, ctx)
        location = located.value
    spec = provisioning_spec(ctx, service, username, password, location, sql_location,
                             sql_server, sql_db)
    LOG.debug("Creating mobile service %s in %s", service, location)
    yield partial(mobile.create_application, ctx, render_application(service, spec))
    description = yield partial(mobile.get_application, ctx, service)
    flat = mobile.flatten_application(description or {})
    if flat["State"] != "Healthy":
        raise ServiceUnhealthy(flat)
    return flat


@Result.collect
def get_resources(ctx: Context, service: str) -> Collect[List[Dict[str, Any]]]:
    """
    List the resources making up a mobile service's application.
    """
    description = yield partial(mobile.get_application, ctx, service)
    return mobile.flatten_application(description or {})["Resources"]


def _delete_server(ctx: Context, resource: Optional[Dict[str, Any]], callback: Callback) -> None:
    if not resource or not resource.get("Name"):
        return callback(ProtocolViolation("The application has no SQL server to delete"), None)
    mobile.delete_sql_server(ctx, resource["Name"], callback)


def deletion_plan(ctx: Context, service: str, resources: List[Dict[str, Any]],
                  delete_data: bool = False, delete_all: bool = False) -> Plan:
    """
    Build the steps to remove a mobile service: the service itself (with or without its table
    data), optionally its SQL server, and finally its application manager entry.

    With `delete_all`, table data is always deleted too.
    """
    delete_data = delete_data or delete_all
    plan = Plan("delete")
    plan.add("Deleting mobile service", "Deleted mobile service",
             "Failed to delete mobile service",
             partial(mobile.delete_service, ctx, service, delete_data=delete_data))
    if delete_all:
        server = next((res for res in resources if res.get("Type") == mobile.SERVER_TYPE), None)
        plan.add("Deleting SQL server", "Deleted SQL server", "Failed to delete SQL server",
                 partial(_delete_server, ctx, server))
    plan.add("Deleting mobile application", "Deleted mobile application",
             "Failed to delete mobile application",
             partial(mobile.delete_application, ctx, service))
    return plan


@Result.collect
def delete_service(ctx: Context, service: str, delete_data: bool = False,
                   delete_all: bool = False,
                   reporter: Optional[Reporter] = None) -> Collect[int]:
    """
    Remove a mobile service and its application, see `deletion_plan`.

    Every step is attempted even if an earlier one fails; an `AggregateFailure` is raised if any
    of them did.
    """
    resources = yield partial(get_resources, ctx, service)
    plan = deletion_plan(ctx, service, resources.value, delete_data, delete_all)
    result = yield partial(plan.run, ctx, reporter=reporter)
    return result.value


def show_service(ctx: Context, service: str, callback: Callback) -> None:
    """
    Fetch everything known about a mobile service: its `service` record, its `application`
    description and its scale settings (`webspace`), as a dict of whichever could be retrieved.

    Fails only if neither the service nor its application could be found.
    """
    def gathered(error: Optional[MobileError], result: Gathered) -> None:
        found = result.results
        for name, ex in result.errors.items():
            LOG.debug("Unable to fetch %s of %s: %s", name, service, ex)
        if not found.get("service") and not found.get("application"):
            ex = MobileError("Cannot obtain information about the service {}. Use "
                             "mobile-service-list to check if it exists.".format(service))
            ex.__cause__ = result.errors.get("service") or result.errors.get("application")
            return callback(ex, None)
        callback(None, found)

    join = Join(gathered)
    service_slot = join.slot("service")

    def got_service(error: Optional[MobileError], value: Any = None) -> None:
        if not error and isinstance(value, dict) and isinstance(value.get("webspace"), str):
            mobile.get_webspace(ctx, value["webspace"], join.slot("webspace"))
        service_slot(error, value)

    mobile.get_service(ctx, service, got_service)
    mobile.get_application(ctx, service, join.slot("application"))
    join.close()


def _webspace_name(record: Any, service: str) -> str:
    name = record.get("webspace") if isinstance(record, dict) else None
    if not isinstance(name, str):
        raise ProtocolViolation("Unable to determine the webspace of the mobile service {}"
                                .format(service))
    return name


@Result.collect
def get_scale(ctx: Context, service: str) -> Collect[Dict[str, Any]]:
    """
    Fetch the scale settings of a mobile service.
    """
    record = yield partial(mobile.get_service, ctx, service)
    webspace = yield partial(mobile.get_webspace, ctx, _webspace_name(record, service))
    return webspace


def parse_instances(value: Any) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        count = 0
    if count < 1:
        raise ValidationError("Number of instances must be a positive integer")
    return count


@Result.collect
def change_scale(ctx: Context, service: str, compute_mode: Optional[str] = None,
                 instances: Optional[int] = None) -> Collect[Dict[str, Any]]:
    """
    Change the compute mode (`Free` or `Reserved`) and/or instance count of a mobile service.

    Nothing is written if the current settings already match.
    """
    if compute_mode is None and instances is None:
        raise ValidationError("Specify a compute mode and/or number of instances")
    if compute_mode is not None and compute_mode not in COMPUTE_MODES:
        raise ValidationError.choices("compute mode", compute_mode, COMPUTE_MODES)
    mode = COMPUTE_MODES.get(compute_mode)
    if instances is not None:
        instances = parse_instances(instances)
    record = yield partial(mobile.get_service, ctx, service)
    name = _webspace_name(record, service)
    webspace = yield partial(mobile.get_webspace, ctx, name)
    if mode != "Dedicated" and instances and instances > 1 \
            and webspace["computeMode"] == "Shared":
        raise ValidationError("Cannot set number of instances to {} because the mobile service "
                              "is in Free mode.  Change the compute mode to Reserved to enable "
                              "increasing the number of instances to more than 1."
                              .format(instances))
    if (mode is None or mode == webspace["computeMode"]) and \
            (instances is None or instances == int(webspace["numberOfInstances"])):
        LOG.debug("Scale settings of %s already match", service)
        return webspace
    settings = {"computeMode": mode or webspace["computeMode"],
                "numberOfInstances": instances or webspace["numberOfInstances"]}
    if settings["computeMode"] == "Dedicated":
        settings["workerSize"] = webspace["workerSize"]
    yield partial(mobile.set_webspace, ctx, name, settings)
    return settings
