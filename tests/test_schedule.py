from datetime import datetime, timezone

import pytest

from appcluster.cluster.schedule import Schedule
from appcluster.config import ConfigurationError


def test_next_fire_time_every_five_minutes():
    schedule = Schedule("*/5 * * * *")
    after = datetime(2024, 3, 1, 10, 2, 30, tzinfo=timezone.utc)

    fire_at = schedule.next_fire_time(after)

    assert fire_at == datetime(2024, 3, 1, 10, 5, tzinfo=timezone.utc)


def test_next_fire_time_is_strictly_after():
    schedule = Schedule("0 * * * *")
    after = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

    assert schedule.next_fire_time(after) == datetime(2024, 3, 1, 11, 0, tzinfo=timezone.utc)


def test_schedule_uses_its_timezone():
    schedule = Schedule("0 3 * * *", timezone="Europe/Moscow")
    after = datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc)

    fire_at = schedule.next_fire_time(after)

    # 03:00 in Moscow is 00:00 UTC, so the next one is a day later
    assert fire_at.astimezone(timezone.utc) == datetime(2024, 3, 2, 0, 0, tzinfo=timezone.utc)


def test_matches():
    schedule = Schedule("30 2 * * 1")

    assert schedule.matches(datetime(2024, 3, 4, 2, 30, tzinfo=timezone.utc))
    assert not schedule.matches(datetime(2024, 3, 5, 2, 30, tzinfo=timezone.utc))


def test_whitespace_is_normalized():
    assert Schedule("*/5  *   * * *") == Schedule("*/5 * * * *")
    assert Schedule("*/5 * * * *").expression == "*/5 * * * *"


@pytest.mark.parametrize("expression", ["", "every five minutes", "61 * * * *", "* * * *", "* * * * * *"])
def test_invalid_expression(expression):
    with pytest.raises(ConfigurationError):
        Schedule(expression)


def test_unsatisfiable_expression():
    with pytest.raises(ConfigurationError):
        Schedule("0 0 30 2 *")


def test_unknown_timezone():
    with pytest.raises(ConfigurationError, match="timezone"):
        Schedule("* * * * *", timezone="Mars/Olympus")
