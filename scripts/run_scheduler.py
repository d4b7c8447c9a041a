from __future__ import annotations

import argparse
import json
import time
from datetime import datetime, timezone
from pathlib import Path

from lead_priority.logging_config import configure_logging
from lead_priority.metrics import collect_metrics
from lead_priority.sweeps import generate_focus_for_all_users, rescore_all_leads


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the re-score and focus sweeps on an interval")
    parser.add_argument("--interval-seconds", type=int, default=86400, help="Seconds between runs")
    parser.add_argument("--max-runs", type=int, default=None, help="Stop after N runs")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument("--skip-rescore", action="store_true")
    parser.add_argument("--skip-focus", action="store_true")
    parser.add_argument("--focus-limit", type=int, default=None)
    parser.add_argument("--exclude-contacted-days", type=int, default=None)
    parser.add_argument("--metrics-out", default=None, help="Optional path to persist latest metrics JSON")
    args = parser.parse_args()

    configure_logging()
    run_count = 0
    interval_seconds = max(args.interval_seconds, 1)

    while True:
        started = _utc_now()
        print(f"[{started}] Sweep run started")

        try:
            rescored = "skipped"
            if not args.skip_rescore:
                rescore = rescore_all_leads()
                rescored = f"{rescore['stats']['successfully_rescored']}/{rescore['stats']['total_leads']}"

            focus_generated = "skipped"
            if not args.skip_focus:
                focus = generate_focus_for_all_users(
                    limit=args.focus_limit,
                    exclude_contacted_days=args.exclude_contacted_days,
                )
                focus_generated = str(focus["stats"]["newly_generated"])

            metrics = collect_metrics()
            finished = _utc_now()
            print(f"[{finished}] Sweep run finished: rescored={rescored} focus_generated={focus_generated}")

            if args.metrics_out:
                out_path = Path(args.metrics_out)
                out_path.parent.mkdir(parents=True, exist_ok=True)
                out_path.write_text(json.dumps(metrics, indent=2), encoding="utf-8")
                print(f"[{finished}] Metrics written: {out_path}")

        except Exception as exc:
            print(f"[{_utc_now()}] Sweep run failed: {exc}")

        run_count += 1
        if args.once:
            break
        if args.max_runs is not None and run_count >= args.max_runs:
            break

        print(f"[{_utc_now()}] Sleeping {interval_seconds}s")
        time.sleep(interval_seconds)


if __name__ == "__main__":
    main()
