"""
Tables of a mobile service, and the permissions, indexes and columns attached to them.
"""

from functools import partial
from typing import Dict, Iterable, Optional

from ..errors import ValidationError
from ..plumbing import mobile
from ..plumbing.channel import Context
from ..plumbing.common import Collect, Result
from ..plumbing.plan import Plan, Reporter


ROLES = ("user", "public", "application", "admin")

OPERATIONS = ("insert", "read", "update", "delete")


def parse_permissions(spec: Optional[str]) -> Dict[str, str]:
    """
    Parse table permissions from `op=role` pairs, separated by commas:

        >>> parse_permissions("insert=public,read=user")
        {'insert': 'public', 'read': 'user'}

    An operation of `*` applies the role to all operations; later pairs take precedence.
    """
    permissions: Dict[str, str] = {}
    if not spec:
        return permissions
    for pair in spec.split(","):
        parts = pair.split("=")
        if len(parts) != 2:
            raise ValidationError("Syntax error in permissions: {!r}".format(pair))
        operation, role = (part.strip() for part in parts)
        if role not in ROLES:
            raise ValidationError.choices("permission level", role, ROLES)
        if operation == "*":
            for op in OPERATIONS:
                permissions[op] = role
        elif operation in OPERATIONS:
            permissions[operation] = role
        else:
            raise ValidationError.choices("operation", operation, OPERATIONS + ("*",))
    return permissions


def _split(names: Optional[str]) -> Iterable[str]:
    return [name.strip() for name in (names or "").split(",") if name.strip()]


@Result.collect
def create_table(ctx: Context, service: str, table: str,
                 permissions: Optional[str] = None) -> Collect[None]:
    """
    Create a table, by default only accessible with the application key.
    """
    settings = dict.fromkeys(OPERATIONS, "application")
    settings.update(parse_permissions(permissions))
    settings["name"] = table
    yield partial(mobile.create_table, ctx, service, settings)


@Result.collect
def update_permissions(ctx: Context, service: str, table: str,
                       permissions: Dict[str, str]) -> Collect[Dict[str, str]]:
    """
    Change some of a table's permissions, keeping the current role of any operation not given.
    """
    current = yield partial(mobile.get_permissions, ctx, service, table)
    merged = dict(current or {})
    merged.update(permissions)
    yield partial(mobile.set_permissions, ctx, service, table, merged)
    return merged


def update_plan(ctx: Context, service: str, table: str, permissions: Optional[str] = None,
                add_index: Optional[str] = None, delete_index: Optional[str] = None,
                delete_column: Optional[str] = None) -> Plan:
    """
    Build the steps to reconfigure a table.  Indexes and columns are given as comma-separated names.

    Permissions are updated first, then indexes are removed and added, and finally columns are
    removed.
    """
    parsed = parse_permissions(permissions)
    plan = Plan("update")
    if parsed:
        plan.add("Updating permissions", "Updated permissions", "Failed to update permissions",
                 partial(update_permissions, ctx, service, table, parsed))
    for column in _split(delete_index):
        plan.add("Deleting index {}".format(column), "Deleted index {}".format(column),
                 "Failed to delete index {}".format(column),
                 partial(mobile.delete_index, ctx, service, table, column))
    for column in _split(add_index):
        plan.add("Adding index {}".format(column), "Added index {}".format(column),
                 "Failed to add index {}".format(column),
                 partial(mobile.create_index, ctx, service, table, column))
    for column in _split(delete_column):
        plan.add("Deleting column {}".format(column), "Deleted column {}".format(column),
                 "Failed to delete column {}".format(column),
                 partial(mobile.delete_column, ctx, service, table, column))
    return plan


@Result.collect
def update_table(ctx: Context, service: str, table: str, permissions: Optional[str] = None,
                 add_index: Optional[str] = None, delete_index: Optional[str] = None,
                 delete_column: Optional[str] = None,
                 reporter: Optional[Reporter] = None) -> Collect[int]:
    plan = update_plan(ctx, service, table, permissions, add_index, delete_index, delete_column)
    if not plan:
        raise ValidationError("No updates specified")
    result = yield partial(plan.run, ctx, reporter=reporter)
    return result.value
