"""
HR Workflow Kernel

Multi-role approval workflow for district HR/payroll records:
- Time cards, substitute time cards, monthly time cards, leave requests
- Registry-driven stage progression with role checks
- Optimistic concurrency on every write
- Leave approval materialized into per-day attendance records
- Administrative locks and per-attempt audit entries
"""

__version__ = "0.1.0"
