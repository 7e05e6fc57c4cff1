#!/usr/bin/env python3
"""
Rebuild the alert history of users from their recorded daily metrics

Usage:
    python backfill_alerts.py                          # all active users, last 30 days
    python backfill_alerts.py --user-id u-123 --days 14
    python backfill_alerts.py --user-id u-123 --dry-run   # print, don't store
    python backfill_alerts.py --user-id u-123 --simulate  # placeholder days when nothing is recorded
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from alerts.config import DEFAULT_BACKFILL_DAYS
from alerts.replay import HistoricalReplay
from alerts.repository import AlertRepository, create_alert_repository
from alerts.store import AlertStore
from database import crud
from database.database import SessionLocal, init_db
from sources.metrics_source import MetaMetricsSource
from sources.settings_provider import DbSettingsProvider
from utils.logging_setup import setup_logging


def find_unknown_users(user_ids: List[str], session_factory=SessionLocal) -> List[str]:
    """User ids with no matching user row"""
    db = session_factory()
    try:
        return [u for u in user_ids if crud.get_user_by_id(db, u) is None]
    finally:
        db.close()


def backfill(
    user_ids: Optional[List[str]],
    days: int = DEFAULT_BACKFILL_DAYS,
    simulate: bool = False,
    dry_run: bool = False,
    session_factory=SessionLocal,
    repository: Optional[AlertRepository] = None,
) -> bool:
    """Replay and (unless dry_run) merge into the alert store.

    Returns False on a failed write or when a requested user does not exist;
    the known users are still replayed.
    """
    settings_provider = DbSettingsProvider(session_factory)
    replay = HistoricalReplay(
        MetaMetricsSource(settings_provider, session_factory),
        settings_provider,
        simulate_when_empty=simulate,
    )
    store = AlertStore(repository or create_alert_repository(session_factory=session_factory))

    success = True
    if not user_ids:
        user_ids = settings_provider.active_users()
        print(f"👥 Active users: {len(user_ids)}")
    else:
        unknown = find_unknown_users(user_ids, session_factory)
        for user_id in unknown:
            print(f"❌ Unknown user: {user_id}")
        if unknown:
            success = False
            user_ids = [u for u in user_ids if u not in unknown]

    for user_id in user_ids:
        alerts = replay.backfill(user_id, days)
        synthetic = sum(1 for a in alerts if a.synthetic)
        print(f"\n🔁 {user_id}: {len(alerts)} alert(s) over {days} day(s)"
              + (f", {synthetic} from simulated data" if synthetic else ""))

        for alert in alerts[:10]:
            print(f"   [{alert.severity.value}/{alert.status.value}] {alert.message}")
        if len(alerts) > 10:
            print(f"   ... {len(alerts) - 10} more")

        if dry_run or not alerts:
            continue

        if store.merge(alerts):
            print("   ✅ Stored")
        else:
            print("   ❌ Alert history write failed")
            success = False

    return success


def main():
    parser = argparse.ArgumentParser(
        description="Rebuild alert history from recorded daily metrics"
    )

    parser.add_argument(
        "--user-id",
        type=str,
        action="append",
        help="User to replay (repeatable; all active users by default)"
    )

    parser.add_argument(
        "--days",
        type=int,
        default=DEFAULT_BACKFILL_DAYS,
        help=f"Days to replay (default {DEFAULT_BACKFILL_DAYS})"
    )

    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use simulated placeholder days for users without recorded metrics"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the alerts without storing them"
    )

    args = parser.parse_args()

    if args.days <= 0:
        print("❌ --days must be positive")
        sys.exit(1)

    setup_logging()
    init_db()

    success = backfill(args.user_id, args.days, args.simulate, args.dry_run)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
