"""
Key-based access to settings spread across differently shaped remote resources.

A mobile service's configuration lives in several resources: some are flat records, whilst others
are lists of records tagged by provider.  A `Projection` maps a flat setting key to a location in
one of these, and a `SettingsProjector` dispatches get/set calls for a fixed table of keys.

Setting a value is a read-modify-write of the whole resource, as the API doesn't support partial
updates.  Concurrent writes to keys sharing a resource may therefore lose an update, and must be
serialised by the caller.
"""

import copy
import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from ..errors import MobileError, ParseError, ValidationError
from .channel import Context
from .common import Callback, Result, State


LOG = logging.getLogger(__name__)

Getter = Callable[[Context, str, Callback], None]
Setter = Callable[[Context, str, Any, Callback], None]

DISCRIMINATOR = "provider"


class Projection:
    """
    Location of a setting inside a remote resource.

    With just a `field`, the resource is a flat record and the value lives at that field.  With a
    `subfield` too, the resource is a list of records, and the value lives at `subfield` of the
    record whose `provider` equals `field`; when setting a value, a missing record is created from
    the `template` defaults.
    """

    def __init__(self, getter: Getter, setter: Setter, field: str, subfield: Optional[str] = None,
                 template: Optional[Mapping[str, Any]] = None,
                 parse: Optional[Callable[[Any], Any]] = None):
        self.getter = getter
        self.setter = setter
        self.field = field
        self.subfield = subfield
        self.template = dict(template or {})
        self.parse = parse

    def _records(self, resource: Any) -> list:
        if resource is None:
            return []
        if not isinstance(resource, list):
            raise ParseError("Expected a list of {} records, got {!r}"
                             .format(DISCRIMINATOR, type(resource).__name__))
        return resource

    def extract(self, resource: Any) -> Any:
        """
        Read the setting's value from a fetched resource, or `None` if it isn't set.
        """
        if self.subfield:
            for record in self._records(resource):
                if record.get(DISCRIMINATOR) == self.field:
                    return record.get(self.subfield)
            return None
        if resource is None:
            return None
        if not isinstance(resource, dict):
            raise ParseError("Expected a settings record, got {!r}".format(type(resource).__name__))
        return resource.get(self.field)

    def apply(self, resource: Any, value: Any) -> Any:
        """
        Return a copy of a fetched resource with the setting's value replaced.
        """
        if self.subfield:
            records = copy.deepcopy(self._records(resource))
            for record in records:
                if record.get(DISCRIMINATOR) == self.field:
                    record[self.subfield] = value
                    break
            else:
                record = dict(self.template, **{DISCRIMINATOR: self.field})
                record[self.subfield] = value
                records.append(record)
            return records
        if resource is None:
            resource = {}
        elif not isinstance(resource, dict):
            raise ParseError("Expected a settings record, got {!r}".format(type(resource).__name__))
        resource = copy.deepcopy(resource)
        resource[self.field] = value
        return resource

    def get(self, ctx: Context, service: str, callback: Callback) -> None:
        def done(error: Optional[MobileError], resource: Any = None):
            if error:
                return callback(error, None)
            try:
                value = self.extract(resource)
            except ParseError as ex:
                return callback(ex, None)
            callback(None, value)

        self.getter(ctx, service, done)

    def set(self, ctx: Context, service: str, value: Any, callback: Callback) -> None:
        if self.parse:
            try:
                value = self.parse(value)
            except ValidationError as ex:
                return callback(ex, None)

        def fetched(error: Optional[MobileError], resource: Any = None):
            if error:
                return callback(error, None)
            try:
                updated = self.apply(resource, value)
            except ParseError as ex:
                return callback(ex, None)
            self.setter(ctx, service, updated, written)

        def written(error: Optional[MobileError], result: Any = None):
            if error:
                return callback(error, None)
            callback(None, Result(State.success, value, caller=SettingsProjector.set))

        self.getter(ctx, service, fetched)


def parse_bool(value: Any) -> bool:
    """
    Accept a boolean, or the strings `true` and `false`.
    """
    if isinstance(value, bool):
        return value
    elif value == "true":
        return True
    elif value == "false":
        return False
    else:
        raise ValidationError("The value must be either true or false")


class SettingsProjector:
    """
    Uniform get/set over a fixed table of setting keys, built once and passed to callers:

        projector = SettingsProjector({"facebookClientId": Projection(get_auth, set_auth,
                                                                       "facebook", "appId")})
        projector.get(ctx, "myservice", "facebookClientId", callback)
    """

    def __init__(self, projections: Mapping[str, Projection]):
        self._projections: Dict[str, Projection] = dict(projections)

    @property
    def keys(self) -> Iterable[str]:
        return tuple(self._projections)

    def projection(self, key: str) -> Projection:
        """
        Look up the projection of a key, raising `ValidationError` for unknown keys.
        """
        try:
            return self._projections[key]
        except KeyError:
            raise ValidationError.choices("setting key", key, self.keys)

    def get(self, ctx: Context, service: str, key: str, callback: Callback) -> None:
        """
        Fetch the current value of a setting, or `None` if not configured.
        """
        try:
            projection = self.projection(key)
        except ValidationError as ex:
            return callback(ex, None)
        LOG.debug("Getting setting %r of %s", key, service)
        projection.get(ctx, service, callback)

    def set(self, ctx: Context, service: str, key: str, value: Any, callback: Callback) -> None:
        """
        Update a setting, rewriting the whole resource containing it.
        """
        try:
            projection = self.projection(key)
        except ValidationError as ex:
            return callback(ex, None)
        LOG.debug("Setting %r of %s", key, service)
        projection.set(ctx, service, value, callback)
