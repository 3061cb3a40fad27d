"""Selectors for the workflow kernel (read side)."""

from hr_workflow.selectors.record_selector import RecordSelector

__all__ = [
    "RecordSelector",
]
