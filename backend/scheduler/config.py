"""
Scheduler configuration - constants, paths, and settings dataclasses
"""
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List


# Environment detection
IN_DOCKER = os.environ.get('IN_DOCKER', 'false').lower() == 'true'

# Paths
if IN_DOCKER:
    PROJECT_ROOT = Path("/app")
else:
    PROJECT_ROOT = Path(__file__).parent.parent

LOGS_DIR = Path(os.environ.get("ADS_ALERTS_LOG_DIR", PROJECT_ROOT / "logs"))
SCHEDULER_LOGS_DIR = LOGS_DIR / "scheduler"

# Chatwork
CHATWORK_API_BASE = os.environ.get("CHATWORK_API_BASE", "https://api.chatwork.com/v2")
CHATWORK_TIMEOUT_SECONDS = 10
PACING_SECONDS = 1.0  # Delay between users

# Message links
DASHBOARD_URL = os.environ.get("DASHBOARD_URL", "http://localhost:3000/dashboard")
IMPROVEMENT_TASKS_URL = os.environ.get("IMPROVEMENT_TASKS_URL", "http://localhost:3000/improvement-tasks")
IMPROVEMENT_STRATEGIES_URL = os.environ.get(
    "IMPROVEMENT_STRATEGIES_URL", "http://localhost:3000/improvement-strategies"
)

# Alert digest
DIGEST_MAX_ALERTS = 10

# Send gate
SEND_GATE_TTL_SECONDS = 2 * 60 * 60  # a bucket only matters during its own hour
SEND_GATE_KEY_PREFIX = "ads_alerts:sent:"


@dataclass
class QuietHoursSettings:
    """Settings for quiet hours (nothing is sent during this period)"""
    enabled: bool = False
    start: str = "23:00"
    end: str = "08:00"


@dataclass
class ScheduleSettings:
    """Which notification kinds run at which JST hours"""
    daily_report_hours: List[int] = field(default_factory=lambda: [9])
    update_hours: List[int] = field(default_factory=lambda: [12, 15, 17, 19])
    alert_hours: List[int] = field(default_factory=lambda: [9, 12, 15, 17, 19])
    poll_interval_seconds: int = 60
    quiet_hours: QuietHoursSettings = field(default_factory=QuietHoursSettings)

    @classmethod
    def from_dict(cls, data: Dict) -> 'ScheduleSettings':
        """Create settings from dictionary (DB format)"""
        defaults = cls()
        quiet_hours_data = data.get("quiet_hours", {})

        return cls(
            daily_report_hours=list(data.get("daily_report_hours", defaults.daily_report_hours)),
            update_hours=list(data.get("update_hours", defaults.update_hours)),
            alert_hours=list(data.get("alert_hours", defaults.alert_hours)),
            poll_interval_seconds=data.get("poll_interval_seconds", 60),
            quiet_hours=QuietHoursSettings(
                enabled=quiet_hours_data.get("enabled", False),
                start=quiet_hours_data.get("start", "23:00"),
                end=quiet_hours_data.get("end", "08:00"),
            ),
        )

    def to_dict(self) -> Dict:
        """Convert settings to dictionary for DB storage"""
        return {
            "daily_report_hours": list(self.daily_report_hours),
            "update_hours": list(self.update_hours),
            "alert_hours": list(self.alert_hours),
            "poll_interval_seconds": self.poll_interval_seconds,
            "quiet_hours": {
                "enabled": self.quiet_hours.enabled,
                "start": self.quiet_hours.start,
                "end": self.quiet_hours.end,
            },
        }

    def hours_for(self, kind: str) -> List[int]:
        return {
            "daily": self.daily_report_hours,
            "update": self.update_hours,
            "alert": self.alert_hours,
        }.get(kind, [])


def get_default_settings() -> Dict:
    """Get default schedule settings as dictionary"""
    return ScheduleSettings().to_dict()


def load_schedule_settings() -> ScheduleSettings:
    """Schedule from the ADS_ALERTS_SCHEDULE environment variable (JSON), defaults otherwise"""
    raw = os.environ.get("ADS_ALERTS_SCHEDULE")
    if not raw:
        return ScheduleSettings()
    return ScheduleSettings.from_dict(json.loads(raw))
