"""
Ads metric alerts

Evaluation of metrics against per-user targets, alert history and historical replay.
Import the store and replay from their modules (alerts.store, alerts.replay).
"""
from alerts.models import Alert, AlertStatus, DataSource, MetricSnapshot, Severity
from alerts.evaluator import evaluate, evaluate_settings_targets, classify

__all__ = [
    # Records
    "Alert",
    "AlertStatus",
    "DataSource",
    "MetricSnapshot",
    "Severity",
    # Evaluation
    "evaluate",
    "evaluate_settings_targets",
    "classify",
]
