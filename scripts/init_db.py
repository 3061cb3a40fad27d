#!/usr/bin/env python3
"""
Create (or recreate) the workflow kernel schema.

Reads the database URL through workflow_config (so HR_WORKFLOW_DATABASE_URL
applies) unless --db-url is given.

Usage:
  python3 scripts/init_db.py [--db-url URL] [--drop]
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create the approvable_records schema")
    p.add_argument("--db-url", default=None, help="Database URL (default: from config)")
    p.add_argument("--drop", action="store_true", help="Drop existing tables first")
    return p.parse_args()


def main() -> int:
    args = _parse_args()

    from hr_workflow.db.engine import (
        create_tables,
        drop_tables,
        init_engine_from_url,
        reset_engine,
    )
    from hr_workflow.logging_config import configure_logging
    from workflow_config import get_active_config

    settings = get_active_config()
    configure_logging(level=settings.log_level)
    url = args.db_url or settings.database_url

    init_engine_from_url(url, echo=settings.echo)
    try:
        if args.drop:
            print("  Dropping tables...")
            drop_tables()
        print("  Creating tables...")
        create_tables()
    finally:
        reset_engine()
    print("  Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
