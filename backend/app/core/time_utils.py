from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def hhmm_to_time(hhmm: str):
    """Parse time strings into datetime.time.

    Accepts common formats:
      - 'HH:MM' (24h)
      - 'HH:MM:SS' (24h)
      - 'H:MM AM/PM' (12h), case-insensitive
      - 'H AM/PM'

    Returns None for empty strings.
    """
    if hhmm is None:
        return None
    s = hhmm.strip()
    if s == "":
        return None

    candidates = [
        "%H:%M",
        "%H:%M:%S",
        "%I:%M %p",
        "%I %p",
    ]
    for fmt in candidates:
        try:
            return datetime.strptime(s, fmt).time()
        except ValueError:
            continue
    raise ValueError("Arrival time must be ISO 8601 or in formats like 'HH:MM' or '10:00 AM'")


def local_tz(tz_name: str | None = None):
    """Resolve 'local'/None to the system tz, anything else as an IANA name."""
    if tz_name and tz_name != "local":
        from zoneinfo import ZoneInfo
        return ZoneInfo(tz_name)
    return datetime.now().astimezone().tzinfo


def parse_arrival_time(
    value: str | None,
    now: datetime,
    provisional: timedelta,
    tz_name: str | None = None,
) -> datetime:
    """Turn the client's needed-arrival value into an aware datetime.

    - None/empty: ``now + provisional``.
    - ISO 8601 datetime: used as-is (naive values are read in ``tz_name``).
    - Time of day ('07:45', '7:45 AM'): the next occurrence of that time in
      ``tz_name``, today or tomorrow.

    Raises ValueError for anything else.
    """
    if value is None or value.strip() == "":
        return now + provisional

    s = value.strip()
    tz = local_tz(tz_name)
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        dt = None
    if dt is not None:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=tz)
        return dt

    t = hhmm_to_time(s)
    local_now = now.astimezone(tz)
    candidate = local_now.replace(
        hour=t.hour, minute=t.minute, second=t.second, microsecond=0
    )
    if candidate <= local_now:
        candidate += timedelta(days=1)
    return candidate
