"""
Typed exception hierarchy for the approval workflow kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP handlers, batch jobs, dashboards) branch on what went wrong:
a locked time card is shown differently from a concurrent edit.  Every error
therefore has:
  1. Its own class (catch by type, not by message)
  2. A class-level ``code`` (machine-readable, API-safe)
  3. Structured attributes (record id, stages, roles) instead of a bare string

    try:
        engine.apply_transition(record_id, actor_id, Role.ADMIN, Action.ADVANCE)
    except VersionConflictError as e:
        reload_and_ask_user(e.record_id)
    except WorkflowKernelError as e:
        api_response(code=e.code, message=str(e))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkflowKernelError (base)
    |
    +-- RecordError
    |   +-- RecordNotFoundError
    |   +-- InvalidPayloadError
    |   +-- InvariantViolationError
    |
    +-- TransitionError
    |   +-- IllegalTransitionError
    |   +-- UnknownRecordTypeError
    |
    +-- AccessError
    |   +-- PermissionDeniedError
    |   +-- RecordLockedError
    |
    +-- ConcurrencyError
    |   +-- VersionConflictError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ExpansionPartialFailure   (warning object, attached to results)
    +-- UnhandledItemError        (non-kernel error inside a batch item)

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Record          | RECORD_NOT_FOUND            | Record id doesn't exist
                | INVALID_PAYLOAD             | Type-specific payload is malformed
                | INVARIANT_VIOLATION         | A write would break a record invariant
----------------|-----------------------------|-----------------------------------------
Transition      | ILLEGAL_TRANSITION          | Action not legal from the current stage
                | UNKNOWN_RECORD_TYPE         | Record type not in the stage registry
----------------|-----------------------------|-----------------------------------------
Access          | PERMISSION_DENIED           | Actor role mismatch / unverified claim
                | RECORD_LOCKED               | Record frozen by the lock manager
----------------|-----------------------------|-----------------------------------------
Concurrency     | VERSION_CONFLICT            | Stored version != expected version
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | ORM edit/delete outside the store's CAS
----------------|-----------------------------|-----------------------------------------
Expansion       | EXPANSION_PARTIAL_FAILURE   | Some leave days were not materialized
----------------|-----------------------------|-----------------------------------------
Batch           | UNHANDLED_EXCEPTION         | Batch item failed outside the hierarchy

VersionConflictError is never retried inside the kernel.  Retrying without
re-reading the record would let two approvers both win.
===============================================================================
"""

from __future__ import annotations


class WorkflowKernelError(Exception):
    """
    Base exception for all workflow kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "WORKFLOW_KERNEL_ERROR"


# Record-related exceptions


class RecordError(WorkflowKernelError):
    """Base exception for record-level errors."""

    code: str = "RECORD_ERROR"


class RecordNotFoundError(RecordError):
    """Approvable record with the given id does not exist."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")


class InvalidPayloadError(RecordError):
    """Type-specific payload failed validation."""

    code: str = "INVALID_PAYLOAD"

    def __init__(self, record_type: str, reason: str):
        self.record_type = record_type
        self.reason = reason
        super().__init__(f"Invalid {record_type} payload: {reason}")


class InvariantViolationError(RecordError):
    """
    A proposed write would break a record invariant.

    Raised by the record store before anything is persisted, e.g. when a
    mutation truncates the approval history or changes the subject.
    """

    code: str = "INVARIANT_VIOLATION"

    def __init__(self, record_id: str, invariant: str):
        self.record_id = record_id
        self.invariant = invariant
        super().__init__(f"Invariant violated on record {record_id}: {invariant}")


# Transition-related exceptions


class TransitionError(WorkflowKernelError):
    """Base exception for stage transition errors."""

    code: str = "TRANSITION_ERROR"


class IllegalTransitionError(TransitionError):
    """The requested action is not legal from the record's current stage."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(self, record_type: str, current_stage: str, action: str):
        self.record_type = record_type
        self.current_stage = current_stage
        self.action = action
        super().__init__(
            f"Action '{action}' is not legal for {record_type} "
            f"in stage '{current_stage}'"
        )


class UnknownRecordTypeError(TransitionError):
    """No workflow is registered for the record type."""

    code: str = "UNKNOWN_RECORD_TYPE"

    def __init__(self, record_type: str):
        self.record_type = record_type
        super().__init__(f"No workflow registered for record type: {record_type}")


# Access-related exceptions


class AccessError(WorkflowKernelError):
    """Base exception for access control errors."""

    code: str = "ACCESS_ERROR"


class PermissionDeniedError(AccessError):
    """Actor is not allowed to perform the operation."""

    code: str = "PERMISSION_DENIED"

    def __init__(
        self,
        actor_id: str,
        actor_role: str,
        reason: str,
        required_roles: tuple[str, ...] = (),
    ):
        self.actor_id = actor_id
        self.actor_role = actor_role
        self.reason = reason
        self.required_roles = required_roles
        super().__init__(
            f"Permission denied for actor {actor_id} ({actor_role}): {reason}"
        )


class RecordLockedError(AccessError):
    """Record is locked and the caller did not perform an explicit unlock."""

    code: str = "RECORD_LOCKED"

    def __init__(self, record_id: str, locked_by: str | None, lock_reason: str | None):
        self.record_id = record_id
        self.locked_by = locked_by
        self.lock_reason = lock_reason
        super().__init__(
            f"Record {record_id} is locked"
            + (f" by {locked_by}" if locked_by else "")
            + (f": {lock_reason}" if lock_reason else "")
        )


# Concurrency-related exceptions


class ConcurrencyError(WorkflowKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class VersionConflictError(ConcurrencyError):
    """Compare-and-swap precondition failed: the record changed underneath."""

    code: str = "VERSION_CONFLICT"

    def __init__(self, record_id: str, expected_version: int, actual_version: int | None = None):
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        detail = f", found {actual_version}" if actual_version is not None else ""
        super().__init__(
            f"Version conflict on record {record_id}: "
            f"expected version {expected_version}{detail}"
        )


# Immutability-related exceptions


class ImmutabilityError(WorkflowKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to edit or delete a record outside the compare-and-swap path.

    Records are only mutated by ``RecordStore.compare_and_swap`` and are never
    physically deleted by the kernel.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")


# Warnings


class ExpansionPartialFailure(WorkflowKernelError):
    """
    Leave approval succeeded but some attendance days were not created.

    Never raised by the engine.  Attached to ``TransitionResult.warnings``
    next to the successful approval.
    """

    code: str = "EXPANSION_PARTIAL_FAILURE"

    def __init__(self, leave_request_id: str, created_count: int, failed_count: int):
        self.leave_request_id = leave_request_id
        self.created_count = created_count
        self.failed_count = failed_count
        super().__init__(
            f"Leave request {leave_request_id}: {created_count} attendance day(s) "
            f"created, {failed_count} failed"
        )


class UnhandledItemError(WorkflowKernelError):
    """
    A batch item failed with an error outside this hierarchy.

    The batch processor wraps the original error so every per-id failure
    carries a ``code``; the original is kept as ``__cause__``.
    """

    code: str = "UNHANDLED_EXCEPTION"

    def __init__(self, record_id: str, error_type: str, message: str):
        self.record_id = record_id
        self.error_type = error_type
        super().__init__(f"Record {record_id}: unhandled {error_type}: {message}")
