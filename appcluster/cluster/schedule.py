from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter, CroniterBadCronError, CroniterBadDateError

from ..config import ConfigurationError
from .models import utcnow


class Schedule:
    """Five-field cron expression evaluated in a fixed timezone."""

    def __init__(self, expression: str, timezone: str = "UTC"):
        self.expression = " ".join(str(expression).split())
        try:
            self.tz = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Unknown timezone for schedule '{expression}': {timezone}") from e

        if len(self.expression.split()) != 5 or not croniter.is_valid(self.expression):
            raise ConfigurationError(f"Invalid cron expression: '{expression}'")

        # Rules such as "0 0 30 2 *" parse but never fire
        try:
            self.next_fire_time(utcnow())
        except (CroniterBadCronError, CroniterBadDateError, ValueError) as e:
            raise ConfigurationError(f"Cron expression never matches: '{expression}' ({e})") from e

    def next_fire_time(self, after: datetime) -> datetime:
        return croniter(self.expression, after.astimezone(self.tz)).get_next(datetime)

    def matches(self, moment: datetime) -> bool:
        return croniter.match(self.expression, moment.astimezone(self.tz))

    def __repr__(self):
        return f"Schedule('{self.expression}', tz={self.tz.key})"

    def __eq__(self, other):
        if not isinstance(other, Schedule):
            return NotImplemented
        return self.expression == other.expression and self.tz == other.tz

    def __hash__(self):
        return hash((self.expression, self.tz.key))
