import json
from typing import Any, List, Optional, Union

# Support for the definition model classes.
#
# FeatureFlag subclasses ModelEntity: it is decoded from the dict that the definitions endpoint
# (or a cache provider) supplies, and keeps that dict so the definition can be handed back to a
# cache provider unchanged. Lower-level classes such as FlagConditionGroup only exist inside a flag
# and do not keep their source dict.
#
# All decoding goes through the opt_ and req_ helpers so that a value of the wrong JSON type
# rejects the definition when it is loaded, instead of failing later inside evaluation.


def _type_error(name: str, expected: str, value: Any) -> ValueError:
    return ValueError('invalid flag definition: "%s" should be %s but was %s' % (name, expected, value.__class__.__name__))


def opt_type(data: dict, name: str, desired_type, expected: Optional[str] = None) -> Any:
    value = data.get(name)
    # bool is an int subclass, so it must never satisfy a numeric field
    if value is not None and (not isinstance(value, desired_type) or (isinstance(value, bool) and bool not in _as_tuple(desired_type))):
        raise _type_error(name, expected or str(desired_type), value)
    return value


def _as_tuple(desired_type) -> tuple:
    return desired_type if isinstance(desired_type, tuple) else (desired_type,)


def opt_bool(data: dict, name: str, default: bool = False) -> bool:
    value = opt_type(data, name, bool, 'a boolean')
    return default if value is None else value


def opt_dict(data: dict, name: str) -> dict:
    return opt_type(data, name, dict, 'an object') or {}


def opt_dict_list(data: dict, name: str) -> List[dict]:
    return validate_list_type(opt_list(data, name), name, dict)


def opt_int(data: dict, name: str) -> Optional[int]:
    return opt_type(data, name, int, 'an integer')


def opt_number(data: dict, name: str) -> Optional[Union[int, float]]:
    return opt_type(data, name, (int, float), 'a number')


def opt_list(data: dict, name: str) -> list:
    return opt_type(data, name, list, 'an array') or []


def opt_str(data: dict, name: str) -> Optional[str]:
    return opt_type(data, name, str, 'a string')


def opt_id(data: dict, name: str) -> Optional[str]:
    """Flag and cohort ids are numbers in the API payload; they are always handled as strings."""
    value = opt_type(data, name, (int, str), 'an id')
    return None if value is None else str(value)


def req_str(data: dict, name: str) -> str:
    value = opt_str(data, name)
    if not value:
        raise ValueError('invalid flag definition: required property "%s" is missing' % name)
    return value


def validate_list_type(items: list, name: str, desired_type) -> list:
    for item in items:
        if not isinstance(item, desired_type):
            raise _type_error(name, 'an array of %s' % desired_type.__name__, item)
    return items


class ModelEntity:
    def __init__(self, data: dict):
        self._data = data

    def to_json_dict(self) -> dict:
        return self._data

    def get(self, attribute, default=None) -> Any:
        return self._data.get(attribute, default)

    def __eq__(self, other) -> bool:
        return self.__class__ == other.__class__ and self._data == other._data

    def __repr__(self) -> str:
        return json.dumps(self._data, separators=(',', ':'))
