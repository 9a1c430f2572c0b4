from typing import Any, List, Optional, Union

from flaglocal.impl.model.entity import *
from flaglocal.impl.util import log

FLAG_EVALUATES_TO = 'flag_evaluates_to'


class PropertyFilter:
    """
    Compares one person or group property against a value. ``type`` is ``person``, ``group``, or
    absent (cohort definitions often omit it).
    """
    __slots__ = ['_key', '_type', '_value', '_operator', '_negation']

    def __init__(self, data: dict):
        self._key = req_str(data, 'key')
        self._type = opt_str(data, 'type')
        self._value = data.get('value')
        self._operator = opt_str(data, 'operator') or 'exact'
        self._negation = opt_bool(data, 'negation')

    @property
    def key(self) -> str:
        return self._key

    @property
    def type(self) -> Optional[str]:
        return self._type

    @property
    def value(self) -> Any:
        return self._value

    @property
    def operator(self) -> str:
        return self._operator

    @property
    def negation(self) -> bool:
        return self._negation


class CohortFilter:
    __slots__ = ['_cohort_id', '_negation']

    def __init__(self, data: dict):
        value = data.get('value')
        if value is None:
            raise ValueError('invalid flag definition: cohort filter has no cohort id')
        self._cohort_id = str(value)
        self._negation = opt_bool(data, 'negation')

    @property
    def cohort_id(self) -> str:
        return self._cohort_id

    @property
    def negation(self) -> bool:
        return self._negation


class FlagFilter:
    """
    Requires another flag to have evaluated to ``value`` for the same context. ``flag_id`` is the
    referenced flag's numeric id as a string, not its key.
    """
    __slots__ = ['_flag_id', '_value', '_operator', '_negation']

    def __init__(self, data: dict):
        key = data.get('key')
        if key is None or key == '':
            raise ValueError('invalid flag definition: flag filter has no flag id')
        self._flag_id = str(key)
        self._value = data.get('value')
        self._operator = opt_str(data, 'operator') or FLAG_EVALUATES_TO
        self._negation = opt_bool(data, 'negation')

    @property
    def flag_id(self) -> str:
        return self._flag_id

    @property
    def value(self) -> Any:
        return self._value

    @property
    def operator(self) -> str:
        return self._operator

    @property
    def negation(self) -> bool:
        return self._negation


class UnknownFilter:
    """A filter of a type this SDK does not understand. It never matches."""
    __slots__ = ['_type']

    def __init__(self, filter_type: Optional[str]):
        self._type = filter_type

    @property
    def type(self) -> Optional[str]:
        return self._type


PropertyMatcher = Union[PropertyFilter, CohortFilter, FlagFilter, UnknownFilter]

_PROPERTY_TYPES = (None, 'person', 'group')


def decode_matcher(data: dict) -> PropertyMatcher:
    filter_type = opt_str(data, 'type')
    if filter_type == 'cohort':
        return CohortFilter(data)
    if filter_type == 'flag':
        return FlagFilter(data)
    if filter_type in _PROPERTY_TYPES:
        return PropertyFilter(data)
    log.warning("Ignoring property filter of unsupported type '%s'" % filter_type)
    return UnknownFilter(filter_type)


def decode_matchers(data: dict, name: str) -> List[PropertyMatcher]:
    return list(decode_matcher(item) for item in opt_dict_list(data, name))


class PropertyGroup:
    """
    A cohort definition: an AND/OR combination of either nested groups or matchers.
    """
    __slots__ = ['_type', '_groups', '_matchers']

    def __init__(self, data: dict):
        self._type = (opt_str(data, 'type') or 'AND').upper()
        values = opt_dict_list(data, 'values')
        self._groups: List[PropertyGroup] = []
        self._matchers: List[PropertyMatcher] = []
        if len(values) > 0 and 'values' in values[0]:
            self._groups = list(PropertyGroup(item) for item in values)
        else:
            self._matchers = decode_matchers(data, 'values')

    @property
    def type(self) -> str:
        return self._type

    @property
    def groups(self) -> List['PropertyGroup']:
        return self._groups

    @property
    def matchers(self) -> List[PropertyMatcher]:
        return self._matchers

    @property
    def empty(self) -> bool:
        return len(self._groups) == 0 and len(self._matchers) == 0
