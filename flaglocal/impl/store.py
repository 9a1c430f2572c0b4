from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Set

from flaglocal.impl.dependency_graph import (DependencyGraph,
                                             build_dependency_graph)
from flaglocal.impl.model.feature_flag import FeatureFlag
from flaglocal.impl.model.property import PropertyGroup
from flaglocal.impl.util import log
from flaglocal.interfaces import FlagDefinitionCacheData


class CacheSnapshot:
    """
    One complete, immutable set of flag definitions, group type mappings, and cohort definitions.

    A snapshot is built from the JSON-compatible data returned by the definitions endpoint or by a
    cache provider. Definitions that cannot be decoded are logged and left out; deleted flags are
    left out.
    """

    def __init__(self, flags: List[FeatureFlag], group_type_mapping: Mapping[str, str], cohorts: Mapping[str, PropertyGroup], cohort_data: Mapping[str, Any]):
        self.__flags = tuple(flags)
        self.__flags_by_key = {flag.key: flag for flag in flags}
        self.__group_type_mapping = dict(group_type_mapping)
        self.__cohorts = dict(cohorts)
        self.__cohort_data = dict(cohort_data)

    @classmethod
    def from_data(cls, data: Mapping[str, Any]) -> 'CacheSnapshot':
        flags = []
        for item in data.get('flags') or []:
            flag = _decode_flag(item)
            if flag is not None and not flag.deleted:
                flags.append(flag)

        cohorts = {}
        cohort_data = {}
        for cohort_id, item in (data.get('cohorts') or {}).items():
            if not isinstance(item, dict):
                log.warning("Skipping cohort %s that is not an object" % cohort_id)
                continue
            try:
                cohorts[str(cohort_id)] = PropertyGroup(item)
                cohort_data[str(cohort_id)] = item
            except ValueError as e:
                log.warning("Skipping cohort %s that could not be decoded: %s" % (cohort_id, e))

        group_type_mapping = {str(k): v for k, v in (data.get('group_type_mapping') or {}).items()}
        return CacheSnapshot(flags, group_type_mapping, cohorts, cohort_data)

    @classmethod
    def empty(cls) -> 'CacheSnapshot':
        return CacheSnapshot([], {}, {}, {})

    @property
    def flags(self) -> List[FeatureFlag]:
        return list(self.__flags)

    @property
    def group_type_mapping(self) -> Dict[str, str]:
        return dict(self.__group_type_mapping)

    @property
    def cohorts(self) -> Dict[str, PropertyGroup]:
        return dict(self.__cohorts)

    def get_flag(self, key: str) -> Optional[FeatureFlag]:
        return self.__flags_by_key.get(key)

    def group_name(self, group_type_index: int) -> Optional[str]:
        return self.__group_type_mapping.get(str(group_type_index))

    def get_cohort(self, cohort_id: str) -> Optional[PropertyGroup]:
        return self.__cohorts.get(cohort_id)

    def __len__(self) -> int:
        return len(self.__flags)

    def merged_over(self, previous: 'CacheSnapshot') -> 'CacheSnapshot':
        """
        Returns a snapshot with this snapshot's definitions taking precedence over ``previous``, and
        anything only ``previous`` has kept. Used when the API reports that some flags could not be
        computed, so that a partial response does not drop definitions that were still good.
        """
        flags_by_key = {flag.key: flag for flag in previous.__flags}
        flags_by_key.update(self.__flags_by_key)
        group_type_mapping = {**previous.__group_type_mapping, **self.__group_type_mapping}
        cohorts = {**previous.__cohorts, **self.__cohorts}
        cohort_data = {**previous.__cohort_data, **self.__cohort_data}
        return CacheSnapshot(list(flags_by_key.values()), group_type_mapping, cohorts, cohort_data)

    def to_cache_data(self) -> FlagDefinitionCacheData:
        return FlagDefinitionCacheData(
            flags=[flag.to_json_dict() for flag in self.__flags],
            group_type_mapping=dict(self.__group_type_mapping),
            cohorts=dict(self.__cohort_data),
        )


def _decode_flag(item: Any) -> Optional[FeatureFlag]:
    if not isinstance(item, dict):
        log.warning("Skipping flag definition that is not an object")
        return None
    try:
        return FeatureFlag(item)
    except ValueError as e:
        log.warning("Skipping flag definition '%s' that could not be decoded: %s" % (item.get('key'), e))
        return None


class StoreState(NamedTuple):
    snapshot: CacheSnapshot
    graph: DependencyGraph
    id_to_key: Dict[str, str]
    removed_flags: Set[str]


class FlagDefinitionStore:
    """
    Holds the flag definitions currently in use along with their dependency graph.

    The snapshot and graph are replaced together with a single assignment, so a reader that grabs
    :py:attr:`state` sees one consistent pair even if an update happens while it is evaluating.
    Readers must treat the state as read-only.
    """

    def __init__(self):
        self.__state = self.__build(CacheSnapshot.empty())

    @staticmethod
    def __build(snapshot: CacheSnapshot) -> StoreState:
        graph, id_to_key, removed_flags = build_dependency_graph(snapshot.flags)
        return StoreState(snapshot, graph, id_to_key, removed_flags)

    @property
    def state(self) -> StoreState:
        return self.__state

    @property
    def snapshot(self) -> CacheSnapshot:
        return self.__state.snapshot

    @property
    def flag_count(self) -> int:
        return len(self.__state.snapshot)

    def update(self, snapshot: CacheSnapshot, merge: bool = False) -> StoreState:
        """
        Puts a new snapshot into use.

        :param merge: if True, definitions missing from ``snapshot`` are kept from the current one
        """
        if merge:
            snapshot = snapshot.merged_over(self.__state.snapshot)
        state = self.__build(snapshot)
        self.__state = state
        return state

    def clear(self):
        self.__state = self.__build(CacheSnapshot.empty())
