"""
Scheduled jobs of a mobile service.
"""

from datetime import datetime, timezone
from functools import partial
import logging
from typing import Any, Dict, Optional

from ..errors import ValidationError
from ..plumbing import mobile
from ..plumbing.channel import Context
from ..plumbing.common import Collect, Result


LOG = logging.getLogger(__name__)

INTERVAL_UNITS = ("second", "minute", "hour", "day", "month", "year", "none")

STATUSES = ("enabled", "disabled")


def _timestamp() -> str:
    now = datetime.now(timezone.utc)
    return "{}.{:03d}Z".format(now.strftime("%Y-%m-%dT%H:%M:%S"), now.microsecond // 1000)


def parse_interval(value: Any) -> int:
    try:
        interval = int(value)
    except (TypeError, ValueError):
        interval = -1
    if interval < 0:
        raise ValidationError("The interval must be a positive integer")
    return interval


def _check_unit(unit: str) -> None:
    if unit not in INTERVAL_UNITS:
        raise ValidationError.choices("interval unit", unit, INTERVAL_UNITS)


def job_definition(job: str, interval: Any = 15, unit: str = "minute",
                   start_time: Optional[str] = None) -> Dict[str, Any]:
    """
    Build a new job: on demand if `unit` is `none`, otherwise repeating from the start time (by
    default, now).
    """
    interval = parse_interval(15 if interval is None else interval)
    unit = unit or "minute"
    _check_unit(unit)
    definition: Dict[str, Any] = {"name": job}
    if unit != "none":
        definition.update(intervalUnit=unit, intervalPeriod=interval,
                          startTime=start_time or _timestamp())
    return definition


@Result.collect
def create_job(ctx: Context, service: str, job: str, interval: Any = 15, unit: str = "minute",
               start_time: Optional[str] = None) -> Collect[Dict[str, Any]]:
    """
    Create a scheduled job, every 15 minutes by default.  New jobs start out disabled.
    """
    definition = job_definition(job, interval, unit, start_time)
    yield partial(mobile.create_job, ctx, service, definition)
    return definition


@Result.collect
def update_job(ctx: Context, service: str, job: str, interval: Any = None,
               unit: Optional[str] = None, start_time: Optional[str] = None,
               status: Optional[str] = None) -> Collect[Dict[str, Any]]:
    """
    Change the schedule or status of a job.  Nothing is written if the job already matches.
    """
    if interval is not None:
        interval = parse_interval(interval)
    if unit is not None:
        _check_unit(unit)
    if status is not None and status not in STATUSES:
        raise ValidationError.choices("status", status, STATUSES)
    current = yield partial(mobile.get_job, ctx, service, job)
    current = current or {}
    definition = {"intervalPeriod": interval or current.get("intervalPeriod"),
                  "intervalUnit": unit or current.get("intervalUnit"),
                  "startTime": start_time or current.get("startTime"),
                  "status": status or current.get("status")}
    if all(definition[key] == current.get(key) for key in definition):
        LOG.debug("Job %s of %s already matches", job, service)
        return current
    yield partial(mobile.set_job, ctx, service, job, definition)
    return definition
