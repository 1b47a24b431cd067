from datetime import date, datetime

import pytest

from src.timesheet_sync.timesheet_sync.common.datetime_utils import DayRange, minutes_between, to_day_key
from src.timesheet_sync.timesheet_sync.common.pagination import Page, collect_pages
from src.timesheet_sync.timesheet_sync.core.exceptions import ValidationError


def test_day_keys_are_normalized():
    assert to_day_key(date(2024, 3, 4)) == "2024-03-04"
    assert to_day_key(datetime(2024, 3, 4, 23, 59)) == "2024-03-04"
    assert to_day_key(" 2024-03-04 ") == "2024-03-04"


def test_bad_day_key_is_a_validation_error():
    with pytest.raises(ValidationError):
        to_day_key("04/03/2024")


def test_day_range_checks_order_and_overlap():
    march = DayRange.of("2024-03-01", "2024-03-31")

    assert march.contains("2024-03-15")
    assert not march.contains("2024-04-01")
    assert march.overlaps(DayRange.of("2024-03-31", "2024-04-02"))
    assert not march.overlaps(DayRange.of("2024-04-01", "2024-04-02"))
    with pytest.raises(ValidationError):
        DayRange.of("2024-03-02", "2024-03-01")


def test_minutes_between_floors():
    assert minutes_between(datetime(2024, 3, 4, 9, 0), datetime(2024, 3, 4, 9, 59, 59)) == 59


def test_collect_pages_follows_cursor():
    pages = {None: Page(items=(1, 2), next_cursor="a"), "a": Page(items=(3,), next_cursor=None)}

    assert collect_pages(lambda cursor: pages[cursor]) == [1, 2, 3]
