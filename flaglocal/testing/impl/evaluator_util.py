from typing import Optional

from flaglocal.context import EvaluationContext
from flaglocal.impl.store import CacheSnapshot, FlagDefinitionStore, StoreState
from flaglocal.testing.builders import *


def make_state(*flags: FlagBuilder, group_type_mapping: Optional[dict] = None, cohorts: Optional[dict] = None) -> StoreState:
    store = FlagDefinitionStore()
    return store.update(CacheSnapshot.from_data(make_definitions(*flags, group_type_mapping=group_type_mapping, cohorts=cohorts)))


def make_context(distinct_id: str = 'user-1', **kwargs) -> EvaluationContext:
    return EvaluationContext(distinct_id, **kwargs)


def fixed_hash(value: float, variant_value: Optional[float] = None):
    """A hash function that buckets everyone at ``value``, or ``variant_value`` for variant selection."""
    def hash_fn(flag_key, bucketing_id, salt=''):
        if salt == 'variant' and variant_value is not None:
            return variant_value
        return value
    return hash_fn
