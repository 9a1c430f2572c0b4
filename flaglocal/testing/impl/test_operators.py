from datetime import datetime, timezone

import mock
import pytest

from flaglocal.impl.operators import InconclusiveMatchError, match_property


def match(operator, filter_value, property_value):
    return match_property('prop', operator, filter_value, {'prop': property_value})


@pytest.mark.parametrize(
    "op,filter_value,property_value,expected",
    [
        # exact is case-insensitive and accepts a list of values
        ("exact", "value", "value", True),
        ("exact", "VALUE", "value", True),
        ("exact", "value", "other", False),
        ("exact", ["a", "b"], "B", True),
        ("exact", ["a", "b"], "c", False),
        ("exact", 5, "5", True),
        ("is_not", "value", "other", True),
        ("is_not", ["a", "b"], "a", False),
        ("is_set", "", "anything", True),
        # string containment
        ("icontains", "ALU", "value", True),
        ("icontains", "xyz", "value", False),
        ("not_icontains", "xyz", "value", True),
        ("not_icontains", "val", "VALUE", False),
        # regex
        ("regex", "^v.l", "value", True),
        ("regex", "^x", "value", False),
        ("regex", "(", "value", False),
        ("not_regex", "^x", "value", True),
        ("not_regex", "^v", "value", False),
        ("not_regex", "(", "value", False),
        # numeric comparisons
        ("gt", 5, 6, True),
        ("gt", 5, 5, False),
        ("gte", 5, 5, True),
        ("lt", "10", 9, True),
        ("lt", 10, 10.5, False),
        ("lte", 10, 10, True),
        # a string property is compared as a string
        ("gt", 10, "9", True),
        ("lt", "abc", "abd", False),
        ("gt", "abc", "abd", True),
        # semantic versions
        ("semver_eq", "1.2.3", "1.2.3", True),
        ("semver_eq", "1.2.3", "v1.2.3", True),
        ("semver_eq", "1.2", "1.2.0", True),
        ("semver_neq", "1.2.3", "1.2.4", True),
        ("semver_gt", "1.2.3", "1.10.0", True),
        ("semver_gte", "1.2.3", "1.2.3", True),
        ("semver_lt", "2.0.0", "1.9.9", True),
        ("semver_lte", "2.0.0", "2.0.1", False),
        ("semver_gt", "1.0.0", "1.0.0-beta", False),
    ],
)
def test_operator(op, filter_value, property_value, expected):
    assert match(op, filter_value, property_value) == expected


@pytest.mark.parametrize(
    "op,filter_value,property_value,expected",
    [
        ("is_date_before", "2022-05-01", "2022-04-30", True),
        ("is_date_before", "2022-05-01", "2022-05-02T10:00:00Z", False),
        ("is_date_after", "2022-05-01T00:00:00+00:00", "2022-05-01T00:00:01Z", True),
        ("is_date_after", "2022-05-01", 1651363200000 - 1, False),
        ("is_date_before", "-7d", "2000-01-01", True),
        ("is_date_after", "-1h", "2000-01-01", False),
        ("is_date_after", "-10y", "2100-01-01", True),
        # a date-only filter compared with a full timestamp
        ("is_date_before", "2023-01-01", "2022-05-01T10:00:00Z", True),
        ("is_date_after", "2022-05-01T10:00:00Z", "2022-05-02", True),
    ],
)
def test_date_operator(op, filter_value, property_value, expected):
    assert match(op, filter_value, property_value) == expected


@pytest.mark.parametrize(
    "op,filter_value,property_value",
    [
        ("is_date_before", "not a date", "2022-01-01"),
        ("is_date_before", "2022-01-01", "not a date"),
        ("is_date_before", "-10000d", "2022-01-01"),
        ("is_date_after", "2022-01-01", True),
        ("semver_eq", "1.2.3", "banana"),
        ("semver_eq", "banana", "1.2.3"),
        ("no_such_operator", "x", "x"),
        ("is_not_set", "", "x"),
    ],
)
def test_inconclusive_operator(op, filter_value, property_value):
    with pytest.raises(InconclusiveMatchError):
        match(op, filter_value, property_value)


def test_incomparable_dates_are_inconclusive():
    with mock.patch("flaglocal.impl.operators.parse_datetime", side_effect=[datetime(2022, 5, 1), datetime(2022, 5, 1, tzinfo=timezone.utc)]):
        with pytest.raises(InconclusiveMatchError):
            match("is_date_before", "2022-05-01", "2022-05-01")


def test_missing_property_is_inconclusive():
    with pytest.raises(InconclusiveMatchError):
        match_property('prop', 'exact', 'value', {'other': 'value'})


def test_none_property_value_does_not_match():
    assert match_property('prop', 'exact', 'value', {'prop': None}) is False
    assert match_property('prop', 'gt', 5, {'prop': None}) is False


def test_none_property_value_is_compared_by_is_not():
    assert match_property('prop', 'is_not', 'value', {'prop': None}) is True
    assert match_property('prop', 'is_not', 'None', {'prop': None}) is False
