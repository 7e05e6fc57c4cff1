"""
Alert policy constants
"""
import os
from pathlib import Path

# Severity thresholds (multiplicative, relative to the target)
CRITICAL_LOW_RATIO = 0.7   # higher-is-better: critical below 70% of target
CRITICAL_HIGH_RATIO = 1.3  # lower-is-better: critical above 130% of target

# Alert history
ALERT_RETENTION_DAYS = 30
DEFAULT_BACKFILL_DAYS = 30

# Historical alerts are stamped at noon of their snapshot date
HISTORICAL_ALERT_HOUR = 12

# Storage
ALERT_STORE_BACKEND = os.environ.get("ALERT_STORE_BACKEND", "sql").lower()
ALERT_HISTORY_PATH = Path(
    os.environ.get("ALERT_HISTORY_PATH", Path(__file__).parent.parent / "data" / "alert_history.json")
)

# Remediation rule tables
RULES_PATH = Path(__file__).parent / "data" / "remediation_rules.json"
