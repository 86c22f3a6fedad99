"""
Run one reminder/escalation scan over open approvals. Intended for cron.

Usage:
  python scripts/run_approval_scan.py
  python scripts/run_approval_scan.py --escalate-after 72
"""
import argparse
import sys
from dataclasses import replace
from pathlib import Path

# Add project root so leave_portal is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from leave_portal.core.logging import setup_logging
from leave_portal.db.session import SessionLocal
from leave_portal.services.escalation_scheduler import ScanConfig, scan


def main():
    parser = argparse.ArgumentParser(description="Send approval reminders and escalate overdue levels")
    parser.add_argument(
        "--escalate-after",
        type=int,
        default=None,
        help="Escalate steps pending this many hours (overrides ESCALATION_THRESHOLD_HOURS)",
    )
    args = parser.parse_args()

    setup_logging()
    config = ScanConfig.from_settings()
    if args.escalate_after is not None:
        config = replace(config, escalation_threshold_hours=args.escalate_after)

    db = SessionLocal()
    try:
        events = scan(db, config=config)
        for event in events:
            print(f"{event.kind}: leave_request={event.leave_request_id} level={event.level} "
                  f"recipients={list(event.recipient_ids)} age={event.age_hours:.1f}h")
        print(f"Done. {len(events)} event(s).")
    finally:
        db.close()


if __name__ == "__main__":
    main()
