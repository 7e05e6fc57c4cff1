"""
Meta Ads API - insights requests and normalization into daily metrics
"""
import os
import time
from typing import Any, Dict, List, Optional

import requests

from sources.base import MetricsSourceError
from utils.logging_setup import get_logger

logger = get_logger(service="meta_api")


# ===== Constants =====
META_GRAPH_API_BASE = os.environ.get("META_GRAPH_API_BASE", "https://graph.facebook.com/v19.0")
API_MAX_RETRIES = 3
API_RETRY_DELAY_SECONDS = 15
API_TIMEOUT_SECONDS = 30
API_RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

INSIGHT_FIELDS = [
    "spend",
    "impressions",
    "reach",
    "clicks",
    "cpm",
    "cpc",
    "ctr",
    "actions",
    "action_values",
    "campaign_name",
    "date_start",
    "date_stop",
]

# Standard conversion action types
CONVERSION_ACTION_TYPES = {
    "purchase", "lead", "complete_registration", "add_to_cart",
    "initiate_checkout", "add_payment_info", "subscribe",
    "start_trial", "submit_application", "schedule",
    "contact", "donate",
}
_OMNI_CONVERSION_TYPES = ("purchase", "lead", "complete_registration", "add_to_cart", "initiated_checkout")


def _request_with_retries(
    method: str,
    url: str,
    *,
    max_retries: int = API_MAX_RETRIES,
    retry_delay: int = API_RETRY_DELAY_SECONDS,
    sleep=time.sleep,
    **kwargs,
):
    """
    requests wrapper with retries for temporary errors:
    429, 500, 502, 503, 504 + network errors.

    Raises:
        MetricsSourceError: when retries are exhausted
    """
    kwargs.setdefault("timeout", API_TIMEOUT_SECONDS)
    attempt = 0

    while True:
        attempt += 1
        try:
            resp = requests.request(method, url, **kwargs)
        except requests.RequestException as e:
            if attempt > max_retries:
                logger.error(f"{method} {url} - network error after {attempt} attempts: {e}")
                raise MetricsSourceError(f"network error after {attempt} attempts: {e}") from e

            wait = min(5 + attempt * 3, 15)  # 8, 11, 14 seconds
            logger.warning(
                f"{method} {url} - network error: {e}. "
                f"Pause {wait} sec before retry ({attempt}/{max_retries})"
            )
            sleep(wait)
            continue

        if resp.status_code in API_RETRY_STATUS_CODES:
            body = resp.text[:500] if resp.text else "Empty response body"
            if attempt > max_retries:
                logger.error(f"{method} {url} - HTTP {resp.status_code} after {attempt} attempts: {body}")
                raise MetricsSourceError(f"HTTP {resp.status_code} after {attempt} attempts: {body}")

            if resp.status_code == 429:
                wait = retry_delay
                try:
                    retry_after = int(resp.headers.get("Retry-After", "0"))
                    if retry_after > 0:
                        wait = max(wait, retry_after)
                except ValueError:
                    pass
            else:
                wait = min(10 + attempt * 5, retry_delay)  # 15, 15, 15 with the default delay

            logger.warning(
                f"{method} {url} - temporary HTTP error {resp.status_code}. "
                f"Waiting {wait} sec before retry ({attempt}/{max_retries})"
            )
            sleep(wait)
            continue

        if attempt > 1:
            logger.info(f"{method} {url} - recovered after {attempt - 1} retries")
        return resp


def _is_conversion_action(action_type: str) -> bool:
    if action_type in CONVERSION_ACTION_TYPES:
        return True
    if action_type.startswith("offsite_conversion."):
        return "view_content" not in action_type
    if action_type.startswith("onsite_conversion.") or "meta_leads" in action_type:
        return True
    if action_type.startswith("omni_") and any(t in action_type for t in _OMNI_CONVERSION_TYPES):
        return True
    return "lead" in action_type.lower()


def count_conversions(actions: Optional[List[Dict[str, Any]]]) -> int:
    """
    Count conversions from an insight's actions.

    The same conversion is often reported under several action types with the
    same value (e.g. "lead" and "offsite_conversion.fb_pixel_lead"), so each
    distinct value of a conversion-like action is counted once.
    """
    if not actions:
        return 0

    values = set()
    for action in actions:
        if not _is_conversion_action(action.get("action_type") or ""):
            continue
        try:
            values.add(int(float(action.get("value") or 0)))
        except (TypeError, ValueError):
            continue
    return sum(values)


def _number(row: Dict[str, Any], key: str) -> float:
    try:
        return float(row.get(key) or 0)
    except (TypeError, ValueError):
        return 0.0


def normalize_insight(row: Dict[str, Any], daily_budget: Optional[float] = None) -> Dict[str, Any]:
    """
    Turn one daily insight row into catalog metrics.

    budget_rate is spend as a percentage of the daily budget (100 when no budget
    is known); frequency is impressions / reach (0 when reach is unknown).
    """
    spend = _number(row, "spend")
    impressions = _number(row, "impressions")
    reach = _number(row, "reach")
    clicks = _number(row, "clicks")
    conversions = count_conversions(row.get("actions"))

    budget_rate = 100.0
    if daily_budget:
        try:
            budget = float(daily_budget)
        except (TypeError, ValueError):
            budget = 0.0
        if budget > 0:
            budget_rate = spend / budget * 100

    return {
        "date": row.get("date_start"),
        "spend": spend,
        "impressions": impressions,
        "reach": reach,
        "clicks": clicks,
        "ctr": _number(row, "ctr"),
        "cpm": _number(row, "cpm"),
        "cpc": _number(row, "cpc"),
        "conversions": float(conversions),
        "cpa": spend / conversions if conversions > 0 else 0.0,
        "cvr": conversions / clicks * 100 if clicks > 0 else 0.0,
        "budget_rate": budget_rate,
        "frequency": impressions / reach if reach > 0 else 0.0,
    }


def fetch_daily_stats(
    access_token: str,
    account_id: str,
    app_id: str = "",
    date_preset: str = "today",
    since: Optional[str] = None,
    until: Optional[str] = None,
    daily_budget: Optional[float] = None,
    base_url: str = META_GRAPH_API_BASE,
    sleep=time.sleep,
) -> List[Dict[str, Any]]:
    """
    Get per-day account insights.

    Args:
        access_token: Meta user access token
        account_id: Ad account id (act_...)
        app_id: Optional app id
        date_preset: Meta date preset (today, yesterday, ...) when since/until are not given
        since: Start date (YYYY-MM-DD)
        until: End date (YYYY-MM-DD)
        daily_budget: Daily budget used for budget_rate
        base_url: Graph API base URL

    Returns:
        Normalized rows, one per day (empty when the account has no data)

    Raises:
        MetricsSourceError: when the API can't be reached or answers with an error
    """
    params = {
        "access_token": access_token,
        "fields": ",".join(INSIGHT_FIELDS),
        "time_increment": 1,
    }
    if app_id:
        params["app_id"] = app_id
    if since and until:
        params["since"] = since
        params["until"] = until
    else:
        params["date_preset"] = date_preset

    url = f"{base_url}/{account_id}/insights"
    resp = _request_with_retries("GET", url, params=params, sleep=sleep)

    try:
        payload = resp.json()
    except ValueError as e:
        raise MetricsSourceError(f"Invalid JSON from insights API (HTTP {resp.status_code})") from e

    if resp.status_code != 200 or "error" in payload:
        error = payload.get("error") or {}
        message = error.get("message") if isinstance(error, dict) else str(error)
        logger.error(f"Insights API error for {account_id}: HTTP {resp.status_code} {message}")
        raise MetricsSourceError(f"Insights API error: {message or resp.status_code}")

    rows = payload.get("data") or []
    if not rows:
        logger.info(f"No insights for {account_id} ({date_preset if not since else f'{since}..{until}'})")
        return []

    logger.info(f"Insights for {account_id}: {len(rows)} day(s)")
    return [normalize_insight(row, daily_budget) for row in rows]
