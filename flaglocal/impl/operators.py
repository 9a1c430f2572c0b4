from typing import Any, Callable

from semver import VersionInfo

from flaglocal.impl.model.value_parsing import (parse_datetime, parse_number,
                                                parse_regex,
                                                parse_relative_date,
                                                parse_semver)


class InconclusiveMatchError(Exception):
    """
    A condition cannot be decided with the data available locally, for instance because a property
    was not supplied or a dependency could not be evaluated.
    """


class RequiresServerEvaluation(Exception):
    """
    A flag needs data that only the server has, such as membership of a static cohort.
    """


def _exact(override_value: Any, value: Any) -> bool:
    if isinstance(value, list):
        return str(override_value).lower() in [str(v).lower() for v in value]
    return str(value).lower() == str(override_value).lower()


def _is_not(override_value: Any, value: Any) -> bool:
    return not _exact(override_value, value)


def _is_set(override_value: Any, value: Any) -> bool:
    return True


def _icontains(override_value: Any, value: Any) -> bool:
    return str(value).lower() in str(override_value).lower()


def _not_icontains(override_value: Any, value: Any) -> bool:
    return not _icontains(override_value, value)


def _regex(override_value: Any, value: Any) -> bool:
    pattern = parse_regex(value)
    return pattern is not None and pattern.search(str(override_value)) is not None


def _not_regex(override_value: Any, value: Any) -> bool:
    pattern = parse_regex(value)
    return pattern is not None and pattern.search(str(override_value)) is None


def _ordering_operator(fn: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def compare(override_value: Any, value: Any) -> bool:
        # Numeric comparison unless the supplied property is a string, in which case both sides
        # are compared as strings, as the server does.
        parsed_value = parse_number(value)
        try:
            if parsed_value is not None:
                if isinstance(override_value, str):
                    return fn(override_value, str(value))
                return fn(override_value, parsed_value)
            return fn(str(override_value), str(value))
        except TypeError:
            raise InconclusiveMatchError("Cannot compare %r with %r" % (override_value, value))
    return compare


def _date_operator(fn: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def compare(override_value: Any, value: Any) -> bool:
        if isinstance(value, bool):
            raise InconclusiveMatchError("Date operations cannot be performed on boolean values")
        parsed_date = parse_relative_date(value) if isinstance(value, str) else None
        if parsed_date is None:
            parsed_date = parse_datetime(value)
        if parsed_date is None:
            raise InconclusiveMatchError("Invalid date: %s" % value)
        override_date = parse_datetime(override_value)
        if override_date is None:
            raise InconclusiveMatchError("%s is in an invalid date format" % override_value)
        try:
            return fn(override_date, parsed_date)
        except TypeError as e:
            raise InconclusiveMatchError("Dates %s and %s cannot be compared: %s" % (override_value, value, e))
    return compare


def _semver_operator(fn: Callable[[VersionInfo, VersionInfo], bool]) -> Callable[[Any, Any], bool]:
    def compare(override_value: Any, value: Any) -> bool:
        filter_version = parse_semver(value)
        if filter_version is None:
            raise InconclusiveMatchError("Invalid semver in flag definition: %s" % value)
        override_version = parse_semver(override_value)
        if override_version is None:
            raise InconclusiveMatchError("Property value %s is not a valid semver" % override_value)
        return fn(override_version, filter_version)
    return compare


ops = {
    "exact": _exact,
    "is_not": _is_not,
    "is_set": _is_set,
    "icontains": _icontains,
    "not_icontains": _not_icontains,
    "regex": _regex,
    "not_regex": _not_regex,
    "gt": _ordering_operator(lambda a, b: a > b),
    "gte": _ordering_operator(lambda a, b: a >= b),
    "lt": _ordering_operator(lambda a, b: a < b),
    "lte": _ordering_operator(lambda a, b: a <= b),
    "is_date_before": _date_operator(lambda a, b: a < b),
    "is_date_after": _date_operator(lambda a, b: a > b),
    "semver_eq": _semver_operator(lambda a, b: a.compare(b) == 0),
    "semver_neq": _semver_operator(lambda a, b: a.compare(b) != 0),
    "semver_gt": _semver_operator(lambda a, b: a.compare(b) > 0),
    "semver_gte": _semver_operator(lambda a, b: a.compare(b) >= 0),
    "semver_lt": _semver_operator(lambda a, b: a.compare(b) < 0),
    "semver_lte": _semver_operator(lambda a, b: a.compare(b) <= 0),
}

# operators for which a None property value is compared rather than failing outright
NULL_VALUES_ALLOWED_OPERATORS = ("is_not",)


def match_property(key: str, operator: str, value: Any, property_values: dict) -> bool:
    """
    Matches one property filter against the supplied properties.

    :raises InconclusiveMatchError: if the property was not supplied, or the operator is unknown
        or cannot be applied to these values
    """
    if key not in property_values:
        raise InconclusiveMatchError("Property %s not found in property values" % key)
    if operator == "is_not_set":
        raise InconclusiveMatchError("Operator is_not_set is not supported")
    fn = ops.get(operator)
    if fn is None:
        raise InconclusiveMatchError("Unknown operator: %s" % operator)

    override_value = property_values[key]
    if override_value is None and operator not in NULL_VALUES_ALLOWED_OPERATORS:
        # the property was supplied, so this is a real non-match rather than an inconclusive one
        return False
    return fn(override_value, value)
