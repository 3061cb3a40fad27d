#!/usr/bin/env python3
"""
Generate draft monthly time cards for a month.

Employees are read from a text file with one UUID per line (blank lines and
lines starting with '#' are ignored).  Employees who already have a card for
the month are skipped, so the script can be re-run safely.

Usage:
  python3 scripts/generate_monthly.py --month 9 --year 2024 \\
      --employees employees.txt --actor-id UUID [--actor-role secretary]
"""

import argparse
import sys
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Generate monthly time cards")
    p.add_argument("--month", type=int, required=True)
    p.add_argument("--year", type=int, required=True)
    p.add_argument("--employees", type=Path, required=True, help="File of employee UUIDs")
    p.add_argument("--actor-id", type=UUID, required=True)
    p.add_argument("--actor-role", default="secretary")
    return p.parse_args()


def _read_employees(path: Path) -> list[UUID]:
    employees = []
    for line in path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            employees.append(UUID(line))
    return employees


def main() -> int:
    args = _parse_args()

    from hr_workflow.logging_config import configure_logging
    from hr_workflow.orchestrator import WorkflowOrchestrator
    from hr_workflow.services.collaborators import StaticIdentityProvider
    from workflow_config import get_active_config

    settings = get_active_config()
    configure_logging(level=settings.log_level)

    # Command-line runs are trusted operator actions.
    identity = StaticIdentityProvider({args.actor_id: args.actor_role})
    orchestrator = WorkflowOrchestrator.from_settings(settings, identity)

    result = orchestrator.generate_monthly_time_cards(
        args.month,
        args.year,
        _read_employees(args.employees),
        args.actor_id,
        args.actor_role,
    )
    print(f"  Created: {len(result.created_ids)}")
    print(f"  Skipped (already present): {len(result.skipped_subjects)}")
    for subject_id, code in result.failed_subjects:
        print(f"  FAILED {subject_id}: {code}", file=sys.stderr)
    return 1 if result.failed_subjects else 0


if __name__ == "__main__":
    sys.exit(main())
