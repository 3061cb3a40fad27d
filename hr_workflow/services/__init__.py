"""Kernel services: the write side of the approval workflow."""

from hr_workflow.services.batch_processor import BatchProcessor
from hr_workflow.services.collaborators import (
    AuditSink,
    IdentityProvider,
    LoggingAuditSink,
    StaticIdentityProvider,
)
from hr_workflow.services.leave_expansion import LeaveExpansionService
from hr_workflow.services.lock_manager import LockManager
from hr_workflow.services.monthly_generation import MonthlyTimecardGenerator
from hr_workflow.services.record_store import RecordStore
from hr_workflow.services.workflow_engine import WorkflowEngine

__all__ = [
    "AuditSink",
    "BatchProcessor",
    "IdentityProvider",
    "LeaveExpansionService",
    "LockManager",
    "LoggingAuditSink",
    "MonthlyTimecardGenerator",
    "RecordStore",
    "StaticIdentityProvider",
    "WorkflowEngine",
]
