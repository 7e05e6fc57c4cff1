"""
Metric evaluator - turn metric values that miss their targets into alerts
"""
import math
import uuid
from datetime import datetime, time
from typing import Any, Dict, List, Mapping, Optional

from alerts import catalog
from alerts.config import CRITICAL_HIGH_RATIO, CRITICAL_LOW_RATIO, HISTORICAL_ALERT_HOUR
from alerts.models import Alert, AlertStatus, DataSource, MetricSnapshot, Severity
from alerts.rules import RemediationRules, load_rules
from utils.logging_setup import get_logger
from utils.time_utils import JST_TZ, get_jst_time_aware, to_jst

logger = get_logger(service="alerts")

# User settings key -> catalog metric id
SETTINGS_TARGET_KEYS: Dict[str, str] = {
    "target_ctr": "ctr",
    "target_cpa": "cpa",
    "target_cpm": "cpm",
    "target_cv": "conversions",
    "target_cvr": "cvr",
    "target_budget_rate": "budget_rate",
    "target_roas": "roas",
    "target_cpc": "cpc",
}


def parse_target(raw: Any) -> Optional[float]:
    """Return the target as a finite non-zero float, or None when it can't be used."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value == 0:
        return None
    return value


def evaluate_settings_targets(settings: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Map raw user settings (target_ctr, target_cpa, ...) to metric-id keyed targets.
    Values are passed through untouched; evaluate() decides which are usable.
    """
    targets = {}
    for key, metric_id in SETTINGS_TARGET_KEYS.items():
        if key in settings:
            targets[metric_id] = settings[key]
    return targets


def classify(metric_id: str, current_value: float, target_value: float) -> Optional[Severity]:
    """
    Severity of a deviation, or None when the metric meets its target.

    Boundaries are non-critical: exactly 70% (or 130%) of target is a warning.
    """
    if catalog.direction(metric_id) == catalog.LOWER_BETTER:
        if current_value > target_value:
            if current_value > target_value * CRITICAL_HIGH_RATIO:
                return Severity.CRITICAL
            return Severity.WARNING
        return None

    if current_value < target_value:
        if current_value < target_value * CRITICAL_LOW_RATIO:
            return Severity.CRITICAL
        return Severity.WARNING
    return None


def build_message(metric_id: str, current_value: float, target_value: float) -> str:
    position = "above" if catalog.direction(metric_id) == catalog.LOWER_BETTER else "below"
    return (
        f"{catalog.display_name(metric_id)} is {position} target "
        f"{catalog.format_value(target_value, metric_id)} "
        f"(current: {catalog.format_value(current_value, metric_id)})"
    )


def evaluate(
    snapshot: MetricSnapshot,
    targets: Mapping[str, Any],
    user_id: str,
    data_source: DataSource = DataSource.REALTIME,
    now: Optional[datetime] = None,
    rules: Optional[RemediationRules] = None,
) -> List[Alert]:
    """
    Compare a snapshot against the user's targets.

    Args:
        snapshot: Metric values of one day (or "now")
        targets: metric id -> target value; unusable targets are skipped
        user_id: Owner of the snapshot
        data_source: realtime for live checks, historical for replayed days
        now: Reference time (defaults to current JST time)
        rules: Remediation tables (defaults to the packaged ones)

    Returns:
        One alert per metric that misses its target
    """
    rules = rules or load_rules()
    now = to_jst(now) if now else get_jst_time_aware()

    if data_source == DataSource.HISTORICAL:
        timestamp = datetime.combine(snapshot.date, time(HISTORICAL_ALERT_HOUR), tzinfo=JST_TZ)
    else:
        timestamp = now
    bucket_date = snapshot.date

    alerts = []
    for metric_id, raw_target in targets.items():
        target_value = parse_target(raw_target)
        if target_value is None:
            logger.debug(f"Skipping target {metric_id}={raw_target!r} (not a usable number)")
            continue

        current_value = catalog.metric_value(snapshot.values, metric_id)
        severity = classify(metric_id, current_value, target_value)
        if severity is None:
            continue

        alerts.append(Alert(
            id=f"{metric_id}_{data_source.value}_{bucket_date.isoformat()}_{uuid.uuid4().hex[:8]}",
            user_id=user_id,
            metric=catalog.display_name(metric_id),
            metric_id=metric_id,
            target_value=target_value,
            current_value=current_value,
            message=build_message(metric_id, current_value, target_value),
            severity=severity,
            timestamp=timestamp,
            status=AlertStatus.ACTIVE,
            check_items=rules.check_items(metric_id),
            improvements=rules.improvements(metric_id),
            data_source=data_source,
            bucket_date=bucket_date,
            synthetic=snapshot.synthetic,
        ))

    if alerts:
        logger.bind(user_id=user_id).info(
            f"{len(alerts)} alert(s) for {bucket_date} ({data_source.value}): "
            + ", ".join(f"{a.metric}={a.severity.value}" for a in alerts)
        )
    return alerts
