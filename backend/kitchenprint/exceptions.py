"""
KitchenPrint - Custom Exceptions

Every exception raised to an API caller derives from KitchenPrintException,
which carries an error code and HTTP status and serializes to the standard
error envelope:

    {"error": "ROUTING_ERROR", "message": "...", "details": {...}}

Per-printer transport failures are NOT exceptions; they are recorded on the
print job and reported inside the dispatch result.
"""
from typing import Any, Dict, Optional


class KitchenPrintException(Exception):
    """Base exception for all application errors."""

    error_code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(KitchenPrintException):
    """Raised when a requested resource does not exist."""

    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"{resource} {resource_id} not found",
            details={"resource": resource, "id": resource_id},
        )


class ConflictError(KitchenPrintException):
    """Raised when a write would violate a uniqueness rule."""

    error_code = "CONFLICT"
    status_code = 409


class DuplicatePrinterError(ConflictError):
    """Printer name or system identifier already used in the branch."""

    error_code = "DUPLICATE_PRINTER"


class BusinessRuleError(KitchenPrintException):
    """Raised when a request is well-formed but not allowed."""

    error_code = "BUSINESS_RULE_VIOLATION"
    status_code = 400


class RoutingError(KitchenPrintException):
    """
    Printer configuration could not be loaded at all.

    Fatal to a dispatch call: no print jobs are created.
    """

    error_code = "ROUTING_ERROR"
    status_code = 503


class PrintFailedError(KitchenPrintException):
    """
    An explicit, synchronous print request (test page, control ticket)
    did not reach every target printer.
    """

    error_code = "PRINT_FAILED"
    status_code = 502


class TicketLayoutError(KitchenPrintException, ValueError):
    """Width or paper configuration is structurally invalid."""

    error_code = "INVALID_TICKET_LAYOUT"
    status_code = 400


class JobStateError(KitchenPrintException):
    """A print job was asked to leave a terminal state."""

    error_code = "INVALID_JOB_STATE"
    status_code = 409


class PrintAgentError(KitchenPrintException):
    """The local print-agent channel is unavailable or answered with an error."""

    error_code = "PRINT_AGENT_UNAVAILABLE"
    status_code = 503


class PrintAgentTimeout(PrintAgentError):
    """The print-agent did not answer within the request timeout."""

    error_code = "PRINT_AGENT_TIMEOUT"
    status_code = 504
