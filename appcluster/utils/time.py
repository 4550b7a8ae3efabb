from datetime import datetime
from zoneinfo import ZoneInfo


def format_timestamp(moment: datetime, timezone: str = "UTC", time_format: str = "%d.%m.%Y %H:%M:%S") -> str:
    local = moment.astimezone(ZoneInfo(timezone))
    tz_abbr = local.strftime("%Z")
    return local.strftime(f"{time_format} {tz_abbr}")
