from .entity import ModelEntity
from .feature_flag import FeatureFlag, FlagConditionGroup, Variant
from .property import (CohortFilter, FlagFilter, PropertyFilter,
                       PropertyGroup, PropertyMatcher, UnknownFilter)

__all__ = ['ModelEntity', 'FeatureFlag', 'FlagConditionGroup', 'Variant', 'CohortFilter', 'FlagFilter',
           'PropertyFilter', 'PropertyGroup', 'PropertyMatcher', 'UnknownFilter']
