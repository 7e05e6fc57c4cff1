from datetime import date, datetime, timedelta, timezone

# Japan Standard Time (UTC+9)
JST_OFFSET = timedelta(hours=9)
JST_TZ = timezone(JST_OFFSET)

def get_jst_time():
    """
    Returns current time in JST (UTC+9) as naive datetime.
    Useful for databases that store naive datetimes but we want the value to be local time.
    """
    return datetime.now(JST_TZ).replace(tzinfo=None)

def get_jst_time_aware():
    """
    Returns current time in JST (UTC+9) as timezone-aware datetime.
    """
    return datetime.now(JST_TZ)

def get_jst_date() -> date:
    """Returns today's calendar date in JST."""
    return get_jst_time_aware().date()

def to_jst(value: datetime) -> datetime:
    """Convert datetime to aware JST. Naive values are assumed to already be JST."""
    if value.tzinfo is None:
        return value.replace(tzinfo=JST_TZ)
    return value.astimezone(JST_TZ)
