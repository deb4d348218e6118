"""
Scripts to create, inspect and remove mobile services.
"""

from .utils import confirm, ConsoleReporter, DocOptArgs, entrypoint, error, on_success, show
from ..errors import ServiceUnhealthy
from ..plumbing import mobile
from ..plumbing.channel import Context
from ..plumbing.common import Password
from ..tasks import service as tasks


def _print_resources(resources):
    for resource in resources:
        print("{}: {} ({})".format(resource.get("TypeView") or resource.get("Type"),
                                   resource.get("NameView") or "N/A", resource.get("State")))
        if resource.get("Error"):
            print("    {}".format(resource["Error"]))


@entrypoint
def create(opts: DocOptArgs, ctx: Context, service: str, username: str, password: Password):
    """
    Create a mobile service, along with a SQL server and database unless existing ones are given.

    The password is prompted for if not specified.

    Usage: {script} [options] SERVICE USERNAME [PASSWORD]

    Options:
        --location REGION       create the service in a particular region
        --sql-location REGION   create the SQL server in a particular region
        --sql-server NAME       use an existing SQL server
        --sql-db NAME           use an existing SQL database on the given server
    """
    def done(err, result=None):
        if isinstance(err, ServiceUnhealthy):
            _print_resources(err.application["Resources"])
            error(str(err), exit=1)
        elif err:
            error(str(err), exit=1)
        print("Created mobile service {} ({})".format(service, result.value["State"]))
        _print_resources(result.value["Resources"])

    print("Creating mobile service {}".format(service))
    tasks.create_service(ctx, service, username, password, location=opts["--location"],
                         sql_location=opts["--sql-location"], sql_server=opts["--sql-server"],
                         sql_db=opts["--sql-db"], callback=done)


@entrypoint
def delete(opts: DocOptArgs, ctx: Context, service: str):
    """
    Delete a mobile service and its application.

    With `--delete-all`, the SQL server backing the service (and all of its databases) is deleted
    too, implying `--delete-data`.

    Usage: {script} [--delete-data | --delete-all] [--quiet] SERVICE
    """
    def resources(result):
        print("Resources of {}:".format(service))
        _print_resources(result.value)
        if opts["--delete-all"]:
            prompt = "Delete the mobile service, its data and its SQL server?"
        elif opts["--delete-data"]:
            prompt = "Delete the mobile service and its data?"
        else:
            prompt = "Delete the mobile service?"
        confirm(prompt, opts["--quiet"])
        plan = tasks.deletion_plan(ctx, service, result.value, opts["--delete-data"],
                                   opts["--delete-all"])
        plan.run(ctx, on_success(lambda result: print("Deleted mobile service")),
                 ConsoleReporter())

    tasks.get_resources(ctx, service, callback=on_success(resources))


@entrypoint
def list_(ctx: Context):
    """
    List mobile services of the subscription.

    Usage: {script}
    """
    def done(services):
        if not services:
            print("No mobile services created")
        for item in services or ():
            print("{}\t{}\t{}".format(item.get("name"), item.get("state"), item.get("platform")))

    mobile.list_services(ctx, on_success(done))


@entrypoint
def show_(ctx: Context, service: str):
    """
    Show details of a mobile service, its application and its scale settings.

    Usage: {script} SERVICE
    """
    def done(found):
        if found.get("application"):
            flat = mobile.flatten_application(found["application"])
            print("Mobile application: {}".format(flat["State"]))
            _print_resources(flat["Resources"])
        if found.get("service"):
            print("Mobile service:")
            record = found["service"]
            for item in ("name", "state", "applicationUrl", "applicationKey", "masterKey",
                         "webspace", "region"):
                if record.get(item):
                    print("  {}: {}".format(item, record[item]))
            tables = [table["name"] for table in record.get("tables") or ()]
            print("  tables: {}".format(", ".join(tables) if tables else "(none)"))
        if found.get("webspace"):
            print("Scale:")
            webspace = found["webspace"]
            print("  computeMode: {}".format(tasks.COMPUTE_MODE_NAMES.get(webspace["computeMode"],
                                                                         webspace["computeMode"])))
            print("  numberOfInstances: {}".format(webspace["numberOfInstances"]))

    tasks.show_service(ctx, service, on_success(done))


@entrypoint
def restart(ctx: Context, service: str):
    """
    Restart a mobile service.

    Usage: {script} SERVICE
    """
    mobile.restart_service(ctx, service, on_success(lambda result: print("Service was restarted")))


@entrypoint
def regenerate_key(ctx: Context, service: str, key: str):
    """
    Replace the application or master key of a mobile service.

    KEY is either `application` or `master`.

    Usage: {script} SERVICE KEY
    """
    mobile.regenerate_key(ctx, service, key, on_success(lambda result: show(result.value)))


@entrypoint
def log(opts: DocOptArgs, ctx: Context, service: str):
    """
    Show log entries of a mobile service.

    Usage: {script} [options] SERVICE

    Options:
        --query QUERY           raw query string (k=v&k=v), overriding other options
        --top N                 number of entries to return [default: 10]
        --type TYPE             only return entries of the given type (information, warning, error)
        --continuation TOKEN    fetch the page following a previous request
    """
    def done(logs):
        if not logs or not logs.get("results"):
            print("There are no log entries")
            return
        for entry in logs["results"]:
            print("{}\t{}\t{}\t{}".format(entry.get("timeCreated"), entry.get("type"),
                                          entry.get("source"), entry.get("message")))
        if logs.get("continuationToken"):
            print("Continuation token: {}".format(logs["continuationToken"]))

    try:
        top = int(opts["--top"])
    except ValueError:
        error("--top must be a number", exit=1)
    mobile.get_logs(ctx, service, on_success(done), query=opts["--query"],
                    top=top, entry_type=opts["--type"],
                    continuation=opts["--continuation"])
