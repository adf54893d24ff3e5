#!/usr/bin/env python3
"""
View and query bulk scrape execution logs.

Usage:
    python scripts/exec_log.py                  # Show last 5 runs
    python scripts/exec_log.py --last 10        # Show last 10 runs
    python scripts/exec_log.py --today          # Today's runs only
    python scripts/exec_log.py --failures       # Runs with failed units
    python scripts/exec_log.py --full           # Full JSON output
    python scripts/exec_log.py --stats          # Aggregate statistics
"""

import argparse
import json
from datetime import datetime, timezone
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
LOG_FILE = PROJECT_ROOT / "runs" / "logs" / "executions.jsonl"


def load_logs(log_file=LOG_FILE):
    """Load all execution logs, skipping corrupt lines."""
    log_file = Path(log_file)
    if not log_file.exists():
        return []
    logs = []
    for line in log_file.read_text().strip().split('\n'):
        if line:
            try:
                logs.append(json.loads(line))
            except json.JSONDecodeError:
                pass
    return logs


def format_duration(sec):
    """Format seconds as human-readable duration."""
    if sec < 60:
        return f"{sec:.0f}s"
    elif sec < 3600:
        return f"{sec/60:.1f}m"
    else:
        return f"{sec/3600:.1f}h"


def is_failure(entry):
    res = entry.get('results', {})
    return res.get('units_failed', 0) > 0 or bool(res.get('stopped_early'))


def format_entry(entry, full=False):
    """Format a single log entry for display."""
    if full:
        return json.dumps(entry, indent=2)

    ts = entry.get('timestamp', '')[:19].replace('T', ' ')
    dur = format_duration(entry.get('duration_sec', 0))
    cfg = entry.get('config', {})
    res = entry.get('results', {})

    keywords = ', '.join(cfg.get('keywords', [])) or '-'
    locations = ', '.join(cfg.get('locations', {})) or '-'
    window = cfg.get('time_window') or '-'

    phases = res.get('error_phases', {})
    phase_str = ', '.join(f"{k}:{v}" for k, v in phases.items()) if phases else '-'

    lines = [
        f"[{ts}] {keywords} @ {locations} ({window})",
        f"  {res.get('units_attempted', 0)}/{res.get('units_planned', 0)} units, "
        f"{res.get('total_extracted', 0)} extracted, {res.get('total_ingested', 0)} ingested in {dur}",
        f"  errors: {phase_str}",
    ]

    if res.get('recoveries', 0) > 0:
        lines.append(f"  recoveries: {res['recoveries']}")
    if res.get('units_failed', 0) > 0:
        lines.append(f"  FAILED: {res['units_failed']} units")
    if res.get('stopped_early'):
        lines.append(f"  STOPPED EARLY: {res['stopped_early']}")

    return '\n'.join(lines)


def aggregate(logs):
    """Totals across runs."""
    stats = {
        'runs': len(logs),
        'units': 0,
        'failed': 0,
        'extracted': 0,
        'ingested': 0,
        'recoveries': 0,
        'seconds': 0.0,
        'phases': {},
    }
    for l in logs:
        res = l.get('results', {})
        stats['units'] += res.get('units_attempted', 0)
        stats['failed'] += res.get('units_failed', 0)
        stats['extracted'] += res.get('total_extracted', 0)
        stats['ingested'] += res.get('total_ingested', 0)
        stats['recoveries'] += res.get('recoveries', 0)
        stats['seconds'] += l.get('duration_sec', 0)
        for phase, count in res.get('error_phases', {}).items():
            stats['phases'][phase] = stats['phases'].get(phase, 0) + count
    return stats


def main():
    parser = argparse.ArgumentParser(description='View execution logs')
    parser.add_argument('--last', type=int, default=5, help='Show last N runs')
    parser.add_argument('--today', action='store_true', help='Today only')
    parser.add_argument('--failures', action='store_true', help='Runs with failed units only')
    parser.add_argument('--full', action='store_true', help='Full JSON output')
    parser.add_argument('--stats', action='store_true', help='Aggregate statistics')
    args = parser.parse_args()

    logs = load_logs()

    if not logs:
        print("No execution logs found.")
        print("Run a scrape first: python scripts/bulk_scrape.py")
        return

    # Filter
    if args.today:
        today = datetime.now(timezone.utc).date().isoformat()
        logs = [l for l in logs if l.get('timestamp', '').startswith(today)]

    if args.failures:
        logs = [l for l in logs if is_failure(l)]

    if args.stats:
        stats = aggregate(logs)
        print("=== Execution Log Statistics ===")
        print(f"Total runs:      {stats['runs']}")
        print(f"Total units:     {stats['units']} ({stats['failed']} failed)")
        print(f"Jobs extracted:  {stats['extracted']}")
        print(f"Jobs ingested:   {stats['ingested']}")
        print(f"Recoveries:      {stats['recoveries']}")
        print(f"Total time:      {format_duration(stats['seconds'])}")
        print(f"Error phases:    {stats['phases']}")

        if logs:
            first = logs[0].get('timestamp', '')[:10]
            last = logs[-1].get('timestamp', '')[:10]
            print(f"Date range:      {first} to {last}")
        return

    # Show last N
    logs = logs[-args.last:]

    if not logs:
        print("No matching logs found.")
        return

    print(f"=== Last {len(logs)} Execution(s) ===\n")
    for entry in logs:
        print(format_entry(entry, full=args.full))
        print()


if __name__ == '__main__':
    main()
