class DomainError(Exception):
    """Base exception for business rule violations."""

    code = "domain_error"


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules.

    Always raised before any state change, so the call is safe to retry after correction.
    """

    code = "validation_error"


class DocumentRefRequired(ValidationError):
    code = "document_ref_required"


class AuthorizationError(DomainError):
    """Raised when the actor lacks permission for an action."""

    code = "forbidden"


class NotFoundError(DomainError):
    code = "not_found"


class NoScheduleConfigured(NotFoundError):
    code = "no_schedule_configured"


class RecordNotFound(NotFoundError):
    code = "record_not_found"


class EmployeeNotFound(NotFoundError):
    code = "employee_not_found"


class MappingNotFound(NotFoundError):
    code = "mapping_not_found"


class ConflictError(DomainError):
    code = "conflict"


class OvertimeAlreadyResolved(ConflictError):
    code = "overtime_already_resolved"


class DuplicatePunch(ConflictError):
    code = "duplicate_punch"


class StaleRecordError(ConflictError):
    """Another writer changed the record since it was read."""

    code = "stale_record"


class RecordClosed(ConflictError):
    code = "record_closed"


class ConsistencyError(DomainError):
    """Persisted state disagrees with itself. Never auto-corrected."""

    code = "consistency_error"


class LedgerConsistencyError(ConsistencyError):
    code = "ledger_inconsistent"
