"""Error taxonomy shared by the access guard, the workflow engine and the services.

Every business failure is a :class:`DomainError` carrying a stable ``code``
and a client-facing ``message``. HTTP status codes are assigned in one place,
``caseflow.api.errors``.
"""
from __future__ import annotations


class DomainError(Exception):
    """Base class for all domain-level errors."""
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class Unauthenticated(DomainError):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(code="UNAUTHENTICATED", message=message)


class Forbidden(DomainError):
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(code="FORBIDDEN", message=message)


class ValidationError(DomainError):
    """Malformed or inconsistent input."""
    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(code=code, message=message)


class InvalidWorkflow(DomainError):
    """Workflow missing, inactive, owned by another tenant, or structurally invalid."""
    def __init__(self, message: str):
        super().__init__(code="INVALID_WORKFLOW", message=message)


class InvalidTransition(DomainError):
    """No transition matches (stage, action, role)."""
    def __init__(self, action: str, current_stage: str, role: str):
        super().__init__(
            code="INVALID_TRANSITION",
            message=f"Invalid action '{action}' for stage '{current_stage}' and role '{role}'",
        )
        self.action = action
        self.current_stage = current_stage
        self.role = role


class NotFound(DomainError):
    def __init__(self, message: str = "Resource not found", code: str = "NOT_FOUND"):
        super().__init__(code=code, message=message)


class CaseNotFound(NotFound):
    def __init__(self, case_id: str = ""):
        super().__init__(code="CASE_NOT_FOUND", message=f"Case not found: {case_id}")


class WorkflowNotFound(NotFound):
    def __init__(self, workflow_id: str = ""):
        super().__init__(code="WORKFLOW_NOT_FOUND", message=f"Workflow not found: {workflow_id}")


class AlreadyExists(DomainError):
    def __init__(self, message: str):
        super().__init__(code="ALREADY_EXISTS", message=message)


class ConcurrentModification(DomainError):
    """The row changed between read and write (optimistic lock lost)."""
    def __init__(self, aggregate: str, aggregate_id: str, expected_version: int):
        super().__init__(
            code="CONCURRENT_MODIFICATION",
            message=f"{aggregate} {aggregate_id} was modified concurrently; reload and retry",
        )
        self.aggregate_id = aggregate_id
        self.expected_version = expected_version
