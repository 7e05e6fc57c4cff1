"""
Scheduler event logger - JSONL logging for scheduler events
"""
import json
from pathlib import Path
from typing import Dict, Optional

from utils.time_utils import get_jst_time_aware
from scheduler.config import SCHEDULER_LOGS_DIR


def log_scheduler_event(
    event_type: str,
    message: str,
    kind: Optional[str] = None,
    extra_data: Optional[Dict] = None,
    logger=None,
    logs_dir: Optional[Path] = None,
) -> bool:
    """
    Append a scheduler event to the JSONL events file.

    Args:
        event_type: Type of event (STARTED, CYCLE_COMPLETED, etc.)
        message: Human-readable message
        kind: Notification kind the event belongs to, if any
        extra_data: Additional data to include
        logger: Optional logger for error reporting
        logs_dir: Directory of the events file (SCHEDULER_LOGS_DIR by default)

    Returns:
        True if logged successfully, False otherwise
    """
    try:
        logs_dir = logs_dir or SCHEDULER_LOGS_DIR
        logs_dir.mkdir(parents=True, exist_ok=True)

        event = {
            "timestamp": get_jst_time_aware().isoformat(),
            "event_type": event_type,
            "kind": kind,
            "message": message,
        }

        if extra_data:
            event.update(extra_data)

        with open(get_events_file_path(logs_dir), 'a', encoding='utf-8') as f:
            f.write(json.dumps(event, ensure_ascii=False) + '\n')

        return True

    except Exception as e:
        if logger:
            logger.error(f"Error writing scheduler event: {e}")
        return False


def get_events_file_path(logs_dir: Optional[Path] = None) -> Path:
    """Get path to the events file"""
    return (logs_dir or SCHEDULER_LOGS_DIR) / "events.jsonl"


# Event type constants
class EventType:
    """Standard scheduler event types"""
    STARTED = "STARTED"
    SIGNAL_RECEIVED = "SIGNAL_RECEIVED"

    SCHEDULER_LOOP_STARTED = "SCHEDULER_LOOP_STARTED"
    SCHEDULER_STOPPED = "SCHEDULER_STOPPED"
    QUIET_HOURS_SKIP = "QUIET_HOURS_SKIP"

    CYCLE_STARTED = "CYCLE_STARTED"
    CYCLE_COMPLETED = "CYCLE_COMPLETED"
    CYCLE_ERROR = "CYCLE_ERROR"
