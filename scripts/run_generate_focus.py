from __future__ import annotations

import argparse
import json
from datetime import date

from lead_priority.logging_config import configure_logging
from lead_priority.sweeps import generate_focus_for_all_users


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate the daily focus list for every user")
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="Focus date (YYYY-MM-DD), default today UTC")
    parser.add_argument("--limit", type=int, default=None, help="Leads per focus list")
    parser.add_argument("--exclude-contacted-days", type=int, default=None)
    parser.add_argument("--max-workers", type=int, default=None, help="Users processed in parallel")
    parser.add_argument("--json", action="store_true", help="Print the full summary as JSON")
    args = parser.parse_args()

    configure_logging()
    summary = generate_focus_for_all_users(
        focus_date=args.date,
        limit=args.limit,
        exclude_contacted_days=args.exclude_contacted_days,
        max_workers=args.max_workers,
    )
    if args.json:
        print(json.dumps(summary, indent=2))
        return

    stats = summary["stats"]
    print(
        f"Focus for {summary['focus_date']}: generated={stats['newly_generated']} "
        f"existing={stats['already_exists']} failed={stats['failed']} "
        f"users={stats['users_processed']} success_rate={stats['success_rate']}"
    )


if __name__ == "__main__":
    main()
