"""
Tracking of long-running operations started by mutating requests.

The management API accepts some requests (e.g. creating or deleting an application) immediately,
returning an operation ID in the `x-ms-request-id` header, and completes them in the background.
"""

from enum import Enum
import logging
from typing import Any, Optional

from requests import Response

from ..errors import (MobileError, OperationCancelled, OperationFailed, ProtocolViolation,
                      StatusUnknown)
from .channel import Context
from .common import Callback, Result, State, Timer


LOG = logging.getLogger(__name__)

REQUEST_ID = "x-ms-request-id"


class Status(Enum):
    """
    Values of the `Status` field reported for an operation.
    """

    in_progress = "InProgress"
    succeeded = "Succeeded"
    failed = "Failed"


class Phase(Enum):
    """
    Lifecycle of an `OperationTracker`.
    """

    polling = 0
    succeeded = 1
    failed = 2
    transport_failure = 3
    protocol_violation = 4
    cancelled = 5


class OperationTracker:
    """
    Poll an operation's status until it reaches a terminal state, then fire the callback once:

    - `Succeeded`: a successful `Result`
    - `Failed`: `OperationFailed`
    - the status couldn't be fetched: `StatusUnknown`, as the operation may still have completed
    - any other status: `ProtocolViolation`

    While the operation is in progress, the next status check is scheduled on the reactor after the
    polling interval.  Use `cancel` to stop waiting.
    """

    def __init__(self, ctx: Context, request_id: str, callback: Callback,
                 interval: Optional[float] = None):
        self._ctx = ctx
        self.request_id = request_id
        self.interval = ctx.account.poll_interval if interval is None else interval
        self._callback = callback
        self._timer: Optional[Timer] = None
        self.phase = Phase.polling
        self.polls = 0

    @property
    def done(self) -> bool:
        return self.phase != Phase.polling

    def start(self) -> "OperationTracker":
        self._poll()
        return self

    def cancel(self) -> None:
        """
        Stop polling; the callback receives `OperationCancelled` unless it has already fired.
        """
        if self.done:
            return
        if self._timer:
            self._timer.cancel()
        self._finish(Phase.cancelled, OperationCancelled())

    def _poll(self) -> None:
        self._timer = None
        self.polls += 1
        (self._ctx.channel()
         .with_path(self._ctx.account.subscription)
         .with_path("operations")
         .with_path(self.request_id)
         .with_header("Accept", "application/json")
         .get(self._status))

    def _status(self, error: Optional[MobileError], body: Any, resp: Optional[Response]) -> None:
        if self.done:
            LOG.debug("Ignoring status of finished operation %s", self.request_id)
            return
        if error:
            LOG.debug("Unable to fetch status of operation %s: %r", self.request_id, error)
            unknown = StatusUnknown()
            unknown.__cause__ = error
            self._finish(Phase.transport_failure, unknown)
            return
        value = body.get("Status") if isinstance(body, dict) else None
        LOG.debug("Operation %s status: %r", self.request_id, value)
        if value == Status.succeeded.value:
            self._finish(Phase.succeeded, None, Result(State.success, caller=track_operation))
        elif value == Status.failed.value:
            self._finish(Phase.failed, OperationFailed())
        elif value == Status.in_progress.value:
            self._timer = self._ctx.reactor.call_later(self.interval, self._poll)
        else:
            self._finish(Phase.protocol_violation, ProtocolViolation())

    def _finish(self, phase: Phase, error: Optional[MobileError],
                result: Optional[Result[Any]] = None) -> None:
        self.phase = phase
        self._callback(error, result)


def track_operation(ctx: Context, request_id: str, callback: Callback,
                    interval: Optional[float] = None) -> OperationTracker:
    """
    Wait for an operation to complete, returning the tracker so the caller may cancel it.
    """
    return OperationTracker(ctx, request_id, callback, interval).start()


def request_id(resp: Optional[Response]) -> Optional[str]:
    """
    Extract the ID of the operation started by a request, if any.
    """
    if resp is None:
        return None
    return resp.headers.get(REQUEST_ID)
