"""
Scripts to manage tables of mobile services.
"""

from .utils import confirm, ConsoleReporter, DocOptArgs, entrypoint, error, on_success, show
from ..plumbing import mobile
from ..plumbing.channel import Context
from ..plumbing.common import Join
from ..tasks import table as tasks


@entrypoint
def list_(ctx: Context, service: str):
    """
    List tables of a mobile service.

    Usage: {script} SERVICE
    """
    def done(tables):
        if not tables:
            print("No tables created")
        for table in tables or ():
            metrics = table.get("metrics") or {}
            print("{}\t{}".format(table.get("name"), metrics.get("recordCount")))

    mobile.list_tables(ctx, service, on_success(done))


@entrypoint
def show_(ctx: Context, service: str, table: str):
    """
    Show the permissions, columns and scripts of a table.

    Usage: {script} SERVICE TABLE
    """
    def done(gathered):
        for name, err in gathered.errors.items():
            print("Unable to get {}: {}".format(name, err))
        for name in ("table", "permissions", "columns", "scripts"):
            if name in gathered.results:
                print("{}:".format(name.capitalize()))
                show(gathered.results[name], 1)

    join = Join(on_success(done))
    mobile.get_table(ctx, service, table, join.slot("table"))
    mobile.get_permissions(ctx, service, table, join.slot("permissions"))
    mobile.get_columns(ctx, service, table, join.slot("columns"))
    mobile.get_table_scripts(ctx, service, table, join.slot("scripts"))
    join.close()


@entrypoint
def create(opts: DocOptArgs, ctx: Context, service: str, table: str):
    """
    Create a table.

    Permissions are comma-separated `operation=role` pairs, where operation is one of `insert`,
    `read`, `update`, `delete` or `*` (all operations), and role is one of `public`,
    `application`, `user` or `admin`.  Unspecified operations default to `application`.

    Usage: {script} [--permissions=PERMS] SERVICE TABLE
    """
    tasks.create_table(ctx, service, table, opts["--permissions"],
                       callback=on_success(lambda result: print("Created table")))


@entrypoint
def update(opts: DocOptArgs, ctx: Context, service: str, table: str):
    """
    Change the permissions, indexes or columns of a table.

    Indexes and columns are given as comma-separated names.

    Usage: {script} [options] SERVICE TABLE

    Options:
        --permissions=PERMS      operation=role pairs, see mobile-table-create
        --add-index=COLUMNS      create indexes on columns
        --delete-index=COLUMNS   remove indexes from columns
        --delete-column=COLUMNS  remove columns and their data
        --quiet                  skip confirmation before deleting columns
    """
    if opts["--delete-column"]:
        confirm("Delete columns {} and their data?".format(opts["--delete-column"]),
                opts["--quiet"])
    tasks.update_table(ctx, service, table, opts["--permissions"], opts["--add-index"],
                       opts["--delete-index"], opts["--delete-column"], ConsoleReporter(),
                       callback=on_success(lambda result: print("Updated table")))


@entrypoint
def delete(opts: DocOptArgs, ctx: Context, service: str, table: str):
    """
    Delete a table and all of its data.

    Usage: {script} [--quiet] SERVICE TABLE
    """
    confirm("Delete table {} and all of its data?".format(table), opts["--quiet"])
    mobile.delete_table(ctx, service, table, on_success(lambda result: print("Deleted table")))


@entrypoint
def data(opts: DocOptArgs, ctx: Context, service: str, table: str):
    """
    Show rows of a table.

    Usage: {script} [--top=N] [--skip=N] [--query=QUERY] SERVICE TABLE

    Options:
        --top=N             number of rows to return [default: 10]
        --skip=N            number of rows to skip
        --query=QUERY       raw query string (k=v&k=v), overriding other options
    """
    def done(rows):
        if not rows:
            print("No matching records found")
        for row in rows or ():
            show(row)
            print()

    try:
        top = int(opts["--top"])
        skip = int(opts["--skip"] or 0)
    except ValueError:
        error("--top and --skip must be numbers", exit=1)
    mobile.get_data(ctx, service, table, on_success(done), query=opts["--query"], top=top,
                    skip=skip)


@entrypoint
def truncate(opts: DocOptArgs, ctx: Context, service: str, table: str):
    """
    Delete all rows of a table, keeping its schema.

    Usage: {script} [--quiet] SERVICE TABLE
    """
    def counted(result):
        count = (result or {}).get("rowCount")
        confirm("Delete {} rows from table {}?".format(count, table), opts["--quiet"])
        mobile.truncate_table(ctx, service, table, True, on_success(truncated))

    def truncated(result):
        print("Deleted {} rows".format((result or {}).get("rowCount")))

    mobile.truncate_table(ctx, service, table, False, on_success(counted))
