"""
Seed version 1 of each statutory leave policy and activate it.
Leave types that already have a policy are left unchanged. Run with .env loaded.

Usage:
  python scripts/seed_policy.py
  python scripts/seed_policy.py --actor-id 3
"""
import argparse
import sys
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from leave_portal.core.logging import setup_logging
from leave_portal.db.session import SessionLocal
from leave_portal.models.leave import LeaveType
from leave_portal.services import policy_service

# leave_type: (max_days, accrual_per_month, carryover_max, required_approval_levels)
DEFAULT_POLICIES = {
    LeaveType.ANNUAL: (21, Decimal("1.75"), 5, 2),
    LeaveType.SICK: (12, Decimal("0"), 0, 2),
    LeaveType.MATERNITY: (84, Decimal("0"), 0, 3),
    LeaveType.PATERNITY: (5, Decimal("0"), 0, 2),
    LeaveType.COMPASSIONATE: (3, Decimal("0"), 0, 2),
}


def main():
    parser = argparse.ArgumentParser(description="Seed default leave policies")
    parser.add_argument("--actor-id", type=int, default=None, help="Employee id recorded as creator")
    args = parser.parse_args()

    setup_logging()
    db = SessionLocal()
    try:
        for leave_type, (max_days, accrual, carryover, levels) in DEFAULT_POLICIES.items():
            if policy_service.list_policies(db, leave_type):
                print(f"{leave_type.value}: already configured, skipped")
                continue
            policy = policy_service.create_policy(
                db, leave_type, max_days, accrual, carryover, levels, actor_id=args.actor_id
            )
            policy_service.activate_policy_version(db, policy.id, actor_id=args.actor_id)
            print(f"{leave_type.value}: max_days={max_days} accrual={accrual}/month carryover={carryover} levels={levels}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
