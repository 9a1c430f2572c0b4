from typing import Any, Dict, List, Optional, Set

from flaglocal.impl.model.entity import *
from flaglocal.impl.model.property import (FlagFilter, PropertyMatcher,
                                           decode_matchers)


class Variant:
    __slots__ = ['_key', '_rollout_percentage']

    def __init__(self, data: dict):
        self._key = req_str(data, 'key')
        self._rollout_percentage = opt_number(data, 'rollout_percentage') or 0

    @property
    def key(self) -> str:
        return self._key

    @property
    def rollout_percentage(self) -> float:
        return self._rollout_percentage


class FlagConditionGroup:
    __slots__ = ['_properties', '_rollout_percentage', '_variant']

    def __init__(self, data: dict):
        self._properties = decode_matchers(data, 'properties')
        self._rollout_percentage = opt_number(data, 'rollout_percentage')
        self._variant = opt_str(data, 'variant')

    @property
    def properties(self) -> List[PropertyMatcher]:
        return self._properties

    @property
    def rollout_percentage(self) -> Optional[float]:
        return self._rollout_percentage

    @property
    def variant(self) -> Optional[str]:
        return self._variant


class FeatureFlag(ModelEntity):
    __slots__ = [
        '_data',
        '_id',
        '_key',
        '_active',
        '_deleted',
        '_ensure_experience_continuity',
        '_aggregation_group_type_index',
        '_groups',
        '_variants',
        '_payloads',
    ]

    def __init__(self, data: dict):
        super().__init__(data)
        self._key = req_str(data, 'key')
        self._id = opt_id(data, 'id')
        self._deleted = opt_bool(data, 'deleted')
        self._active = opt_bool(data, 'active', default=True)
        self._ensure_experience_continuity = opt_bool(data, 'ensure_experience_continuity')

        filters = opt_dict(data, 'filters')
        self._aggregation_group_type_index = opt_int(filters, 'aggregation_group_type_index')
        self._groups = list(FlagConditionGroup(item) for item in opt_dict_list(filters, 'groups'))
        self._variants = list(Variant(item) for item in opt_dict_list(opt_dict(filters, 'multivariate'), 'variants'))
        self._payloads: Dict[str, Any] = opt_dict(filters, 'payloads')

    @property
    def id(self) -> Optional[str]:
        return self._id

    @property
    def key(self) -> str:
        return self._key

    @property
    def active(self) -> bool:
        return self._active

    @property
    def deleted(self) -> bool:
        return self._deleted

    @property
    def ensure_experience_continuity(self) -> bool:
        return self._ensure_experience_continuity

    @property
    def aggregation_group_type_index(self) -> Optional[int]:
        return self._aggregation_group_type_index

    @property
    def groups(self) -> List[FlagConditionGroup]:
        return self._groups

    @property
    def variants(self) -> List[Variant]:
        return self._variants

    def has_variant(self, key: str) -> bool:
        return any(v.key == key for v in self._variants)

    @property
    def payloads(self) -> Dict[str, Any]:
        return self._payloads

    def flag_dependency_ids(self) -> Set[str]:
        """
        The ids of every flag referenced by a ``flag`` filter in any of this flag's condition groups.
        """
        return set(p.flag_id for group in self._groups for p in group.properties if isinstance(p, FlagFilter))
