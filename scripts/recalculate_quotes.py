#!/usr/bin/env python3
"""
Recalculate persisted quote totals through the pricing engine.

Usage:
    python scripts/recalculate_quotes.py --dry-run
    python scripts/recalculate_quotes.py --retention-base subtotal_plus_margin_v2 --client-type corporativo

Use after any change to the engine's formulas (e.g. moving quotes from
retention on subtotal to retention on subtotal + margin). Prints old and new
totals per quote; --dry-run writes nothing.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from event_pricing.database import SessionLocal  # noqa: E402
from event_pricing.pricing.margin import RetentionBaseMode  # noqa: E402
from event_pricing.services.quote_service import recalculate_quotes  # noqa: E402


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument(
        "--retention-base",
        choices=[m.value for m in RetentionBaseMode],
        default=None,
        help="move quotes to this retention base (default: keep each quote's own)",
    )
    parser.add_argument("--client-type", choices=["social", "corporativo"], default=None)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        report = recalculate_quotes(
            db,
            retention_base_mode=args.retention_base,
            client_type=args.client_type,
            dry_run=args.dry_run,
        )
    finally:
        db.close()

    changed = 0
    failed = 0
    for entry in report:
        if "error" in entry:
            failed += 1
            print(f"  ERROR {entry['quote_number']}: {entry['error']}")
            continue
        if abs(entry["difference"]) > 0.005:
            changed += 1
            print(
                f"  {entry['quote_number']}: ${entry['old_total']:,.2f} -> "
                f"${entry['new_total']:,.2f} ({entry['difference']:+,.2f})"
            )

    mode = "would change" if args.dry_run else "changed"
    print(f"\n{len(report)} quotes processed, {changed} {mode}, {failed} failed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
