"""Errors raised by the mortgage request service and evaluator."""


class MortgageError(Exception):
    """Base class for mortgage request failures reported to callers."""


class DuplicateApplicationError(MortgageError):
    def __init__(self, applicant_id: str):
        super().__init__(f"Applicant {applicant_id} already has an existing mortgage request")
        self.applicant_id = applicant_id


class NotFoundError(MortgageError):
    def __init__(self, message: str = "Mortgage request not found"):
        super().__init__(message)


class ValidationError(MortgageError):
    """A supplied value is malformed (blank applicant id, non-numeric financial field, bad paging)."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class ConcurrencyConflict(MortgageError):
    """Another writer kept updating the same request; the load-merge-save cycle gave up."""

    def __init__(self, request_id: str, attempts: int):
        super().__init__(f"Mortgage request {request_id} was modified concurrently ({attempts} attempts)")
        self.request_id = request_id
        self.attempts = attempts
