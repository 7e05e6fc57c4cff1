"""
Remediation rule tables - check items and improvement suggestions per metric.

Loaded once from alerts/data/remediation_rules.json and exposed read-only.
Keyed by catalog metric id, never by display name.
"""
import json
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from alerts.config import RULES_PATH

# "cv" is an alias of "conversions" in the catalog
_RULE_ALIASES = {"cv": "conversions"}


class RemediationRules:
    """Immutable check-item and improvement tables"""

    def __init__(self, check_items: Mapping[str, List[str]], improvements: Mapping[str, Mapping[str, str]]):
        self._check_items = MappingProxyType({k: tuple(v) for k, v in check_items.items()})
        self._improvements = MappingProxyType(
            {k: MappingProxyType(dict(v)) for k, v in improvements.items()}
        )

    @classmethod
    def from_file(cls, path: Path) -> "RemediationRules":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls(data.get("check_items", {}), data.get("improvements", {}))

    @staticmethod
    def _key(metric_id: str) -> str:
        key = (metric_id or "").strip().lower()
        return _RULE_ALIASES.get(key, key)

    def check_items(self, metric_id: str) -> List[str]:
        return list(self._check_items.get(self._key(metric_id), ()))

    def improvements(self, metric_id: str) -> Dict[str, str]:
        return dict(self._improvements.get(self._key(metric_id), {}))


@lru_cache(maxsize=None)
def load_rules(path: Optional[Path] = None) -> RemediationRules:
    """Load (once per path) the rule tables shipped with the package."""
    return RemediationRules.from_file(path or RULES_PATH)
