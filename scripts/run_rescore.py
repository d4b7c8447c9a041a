from __future__ import annotations

import argparse
import json

from lead_priority.logging_config import configure_logging
from lead_priority.sweeps import rescore_all_leads


def main() -> None:
    parser = argparse.ArgumentParser(description="Re-score every lead for every user")
    parser.add_argument("--max-workers", type=int, default=None, help="Users processed in parallel")
    parser.add_argument("--json", action="store_true", help="Print the full summary as JSON")
    args = parser.parse_args()

    configure_logging()
    summary = rescore_all_leads(max_workers=args.max_workers)
    if args.json:
        print(json.dumps(summary, indent=2))
        return

    stats = summary["stats"]
    print(
        f"Re-scored {stats['successfully_rescored']}/{stats['total_leads']} leads "
        f"for {stats['users_processed']} users "
        f"(failed={stats['failed']}, success_rate={stats['success_rate']})"
    )


if __name__ == "__main__":
    main()
