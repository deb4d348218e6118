"""
Exceptions raised or delivered to callbacks by plumbing and tasks.

Every error passed to a completion callback is a subclass of `MobileError`, so scripts can report
any failure with a single handler.
"""

from typing import Any, Dict, Iterable, Optional


class MobileError(Exception):
    """
    Base class of all errors reported by this library.
    """

    message = "Unknown error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)

    def __str__(self):
        return self.args[0]


class TransportError(MobileError):
    """
    The request never produced an HTTP response (connection refused, TLS failure, timeout).
    """

    message = "Unable to reach the management endpoint"


class StatusUnknown(TransportError):
    """
    The status of a long-running operation could not be fetched, so its outcome is unknown.
    """

    message = ("Unable to determine the status of the async operation. "
               "Please check the status on the management portal.")


class ApplicationError(MobileError):
    """
    The management endpoint rejected the request with a non-success status code.
    """

    def __init__(self, status: int, message: Optional[str] = None, code: Optional[str] = None):
        self.status = status
        self.code = code
        super().__init__(message or "Request failed with status {}".format(status))

    def __repr__(self):
        return "{}({!r}, {!r}, {!r})".format(self.__class__.__name__, self.status, str(self),
                                             self.code)


class ParseError(MobileError):
    """
    A success response was received, but its body could not be understood.
    """

    message = "Unable to parse the response from the management endpoint"


class ProtocolViolation(MobileError):
    """
    The management endpoint replied with a value outside the documented contract.
    """

    message = ("Unexpected response from the management endpoint. "
               "Please confirm the status of the mobile service on the management portal.")


class OperationFailed(MobileError):
    """
    A long-running operation finished unsuccessfully.
    """

    message = "Operation failed. Please confirm the status on the management portal."


class ServiceUnhealthy(OperationFailed):
    """
    Provisioning completed, but left the application in a state other than `Healthy`.

    The flattened application description is kept in `application`, so that failed resources can
    be reported.
    """

    message = "Creation of a mobile service failed."

    def __init__(self, application: Dict[str, Any], message: Optional[str] = None):
        self.application = application
        super().__init__(message)


class OperationCancelled(MobileError):
    """
    Tracking of a long-running operation was abandoned before it finished.
    """

    message = "Stopped waiting for the operation; its outcome is unknown."


class ValidationError(MobileError, ValueError):
    """
    Input supplied by the caller failed a precondition.
    """

    @classmethod
    def choices(cls, what: str, value: Any, valid: Iterable[str]) -> "ValidationError":
        """
        Build an error for a value outside a fixed set, listing the accepted values.
        """
        return cls("Unsupported {} {!r}, must be one of: {}".format(what, value, ", ".join(valid)))


class AggregateFailure(MobileError):
    """
    Summary of a plan in which at least one step failed.
    """

    def __init__(self, failed: int, total: int, noun: Optional[str] = None):
        self.failed = failed
        self.total = total
        kind = "{} operations".format(noun) if noun else "operations"
        super().__init__("Not all {} completed successfully ({} of {} failed)"
                         .format(kind, failed, total))
