"""ORM models for the workflow kernel."""

from hr_workflow.models.record import ApprovableRecordModel, state_columns

__all__ = [
    "ApprovableRecordModel",
    "state_columns",
]
