import hashlib
import json
from typing import (Any, Callable, Dict, Iterable, List, NamedTuple,
                    Optional, Set)

from flaglocal.context import EvaluationContext
from flaglocal.errors import CyclicDependencyError, FlagEvaluationError
from flaglocal.impl.dependency_graph import (DependencyGraph,
                                             match_flag_dependency)
from flaglocal.impl.listeners import Listeners
from flaglocal.impl.model.feature_flag import FeatureFlag, FlagConditionGroup
from flaglocal.impl.model.property import (FLAG_EVALUATES_TO, CohortFilter,
                                           FlagFilter, PropertyFilter,
                                           PropertyGroup, PropertyMatcher)
from flaglocal.impl.operators import (InconclusiveMatchError,
                                      RequiresServerEvaluation,
                                      match_property)
from flaglocal.impl.store import CacheSnapshot, StoreState
from flaglocal.impl.util import log
from flaglocal.interfaces import FlagValue

__LONG_SCALE__ = float(0xFFFFFFFFFFFFFFF)

HashFunction = Callable[[str, str, str], float]


def default_hash(flag_key: str, bucketing_id: str, salt: str = '') -> float:
    """
    Maps a flag key and bucketing id to a float in [0, 1). The same inputs always give the same
    output, and outputs are uniformly distributed, so a 20% rollout is ``hash < 0.2``.
    """
    hash_key = '%s.%s%s' % (flag_key, bucketing_id, salt)
    hash_val = int(hashlib.sha1(hash_key.encode('utf-8')).hexdigest()[:15], 16)
    return hash_val / __LONG_SCALE__


class EvaluationPass(NamedTuple):
    """
    The outcome of evaluating a set of flags for one context.

    :ivar values: computed value per requested flag key
    :ivar failed: requested keys that could not be computed locally
    """
    values: Dict[str, FlagValue]
    failed: Set[str]


class Evaluator:
    """
    Encapsulates the feature flag evaluation logic. The Evaluator has no knowledge of where the
    definitions come from; each call is given the store state to read.

    Each evaluation pass takes the subgraph of the requested flags and their dependencies, evaluates
    it in topological order, and records each computed value in that subgraph's evaluation cache,
    which is where ``flag`` filters read the results of the flags they depend on.
    """

    def __init__(self, hash_fn: Optional[HashFunction] = None, on_error: Optional[Listeners] = None):
        self.__hash = hash_fn or default_hash
        self.__on_error = on_error

    def evaluate(self, state: StoreState, flag_key: str, context: EvaluationContext) -> Optional[FlagValue]:
        """
        :return: the flag's value, or None if it is unknown, was removed for a cyclic dependency,
            or cannot be computed locally
        """
        return self.evaluate_flags(state, [flag_key], context).values.get(flag_key)

    def evaluate_flags(self, state: StoreState, flag_keys: Iterable[str], context: EvaluationContext) -> EvaluationPass:
        requested = list(flag_keys)
        pass_graph = state.graph.filter_by_keys(requested)
        values: Dict[str, FlagValue] = {}
        failed = set(key for key in requested if key not in pass_graph)

        for flag_key in self.__evaluation_order(pass_graph):
            flag = state.snapshot.get_flag(flag_key)
            if flag is None:
                continue
            try:
                value = self._compute_flag_value(flag, context, state, pass_graph)
            except (InconclusiveMatchError, RequiresServerEvaluation) as e:
                log.debug("%s when computing flag locally: %s: %s" % (type(e).__name__, flag_key, e))
                failed.add(flag_key)
                continue
            except Exception as e:
                log.error("Error computing flag locally: %s: %s" % (flag_key, repr(e)))
                failed.add(flag_key)
                if self.__on_error is not None:
                    self.__on_error.notify(FlagEvaluationError(flag_key, e))
                continue
            pass_graph.cache_result(flag_key, value)

        requested_set = set(requested)
        for flag_key in requested_set:
            if pass_graph.has_cached_result(flag_key):
                values[flag_key] = pass_graph.get_cached_result(flag_key)
        return EvaluationPass(values, failed & requested_set)

    @staticmethod
    def __evaluation_order(pass_graph: DependencyGraph) -> List[str]:
        try:
            return pass_graph.topological_sort()
        except CyclicDependencyError as e:
            # cycles are removed when the graph is built, so this means the graph was modified since
            log.error("Unexpected cyclic dependency after cycle removal: %s" % e)
            return pass_graph.flags

    def _compute_flag_value(self, flag: FeatureFlag, context: EvaluationContext, state: StoreState, pass_graph: DependencyGraph) -> FlagValue:
        if flag.ensure_experience_continuity:
            raise InconclusiveMatchError("Flag has experience continuity enabled")

        if not flag.active:
            return False

        group_type_index = flag.aggregation_group_type_index
        if group_type_index is None:
            return self._match_flag_conditions(flag, context.distinct_id, context.person_properties, state, pass_graph)

        group_name = state.snapshot.group_name(group_type_index)
        if group_name is None:
            log.warning("Unknown group type index %d for feature flag %s" % (group_type_index, flag.key))
            raise InconclusiveMatchError("Flag has unknown group type index")

        if group_name not in context.groups:
            log.debug("Can't compute group feature flag %s without group '%s'" % (flag.key, group_name))
            return False

        return self._match_flag_conditions(flag, context.groups[group_name], context.properties_for_group(group_name), state, pass_graph)

    def _match_flag_conditions(self, flag: FeatureFlag, bucketing_id: str, properties: Dict[str, Any], state: StoreState, pass_graph: DependencyGraph) -> FlagValue:
        is_inconclusive = False

        for condition in flag.groups:
            try:
                if self._is_condition_match(flag, bucketing_id, condition, properties, state, pass_graph):
                    variant_override = condition.variant
                    if variant_override is not None and flag.has_variant(variant_override):
                        return variant_override
                    return self._get_matching_variant(flag, bucketing_id) or True
            except InconclusiveMatchError as e:
                log.debug("Inconclusive condition for flag %s: %s" % (flag.key, e))
                is_inconclusive = True

        if is_inconclusive:
            raise InconclusiveMatchError("Can't determine if feature flag is enabled or not with given properties")

        # only False once every condition was decided and none matched
        return False

    def _is_condition_match(self, flag: FeatureFlag, bucketing_id: str, condition: FlagConditionGroup, properties: Dict[str, Any], state: StoreState, pass_graph: DependencyGraph) -> bool:
        rollout_percentage = condition.rollout_percentage

        if len(condition.properties) > 0:
            for matcher in condition.properties:
                if not self._match_matcher(matcher, properties, state, pass_graph):
                    return False
            if rollout_percentage is None:
                return True

        if rollout_percentage is not None and self.__hash(flag.key, bucketing_id, '') > (rollout_percentage / 100.0):
            return False

        return True

    def _match_matcher(self, matcher: PropertyMatcher, properties: Dict[str, Any], state: StoreState, pass_graph: DependencyGraph) -> bool:
        if isinstance(matcher, FlagFilter):
            matches = self._match_flag_filter(matcher, state, pass_graph)
        elif isinstance(matcher, CohortFilter):
            matches = match_cohort(matcher, properties, state.snapshot)
        elif isinstance(matcher, PropertyFilter):
            matches = match_property(matcher.key, matcher.operator, matcher.value, properties)
        else:
            raise InconclusiveMatchError("Unsupported filter type: %s" % matcher.type)
        return not matches if matcher.negation else matches

    @staticmethod
    def _match_flag_filter(matcher: FlagFilter, state: StoreState, pass_graph: DependencyGraph) -> bool:
        if matcher.operator != FLAG_EVALUATES_TO:
            raise InconclusiveMatchError("Unsupported operator '%s' for flag dependency" % matcher.operator)
        if not isinstance(matcher.value, (bool, str)):
            raise InconclusiveMatchError("Invalid value type for flag dependency: %s" % type(matcher.value).__name__)

        dependency_key = state.id_to_key.get(matcher.flag_id)
        if dependency_key is None:
            raise InconclusiveMatchError("Missing flag dependency with id '%s'" % matcher.flag_id)
        if not pass_graph.has_cached_result(dependency_key):
            raise InconclusiveMatchError("Dependency '%s' could not be evaluated" % dependency_key)

        return match_flag_dependency(matcher.value, pass_graph.get_cached_result(dependency_key))

    def _get_matching_variant(self, flag: FeatureFlag, bucketing_id: str) -> Optional[str]:
        hash_value = self.__hash(flag.key, bucketing_id, 'variant')
        value_min = 0.0
        for variant in flag.variants:
            value_max = value_min + variant.rollout_percentage / 100.0
            if value_min <= hash_value < value_max:
                return variant.key
            value_min = value_max
        return None


def get_payload(flag: FeatureFlag, value: Optional[FlagValue]) -> Any:
    """
    Returns the payload configured for a flag value: the ``"true"`` payload for ``True``, or the
    variant's payload for a variant. Payloads stored as JSON strings are decoded.
    """
    if value is None or value is False:
        return None
    payload_key = 'true' if value is True else value
    payload = flag.payloads.get(payload_key)
    if isinstance(payload, str):
        try:
            return json.loads(payload)
        except ValueError:
            return payload
    return payload


def match_cohort(matcher: CohortFilter, properties: Dict[str, Any], snapshot: CacheSnapshot) -> bool:
    """
    :raises RequiresServerEvaluation: if the cohort is not among the locally known cohorts, which
        is the case for static cohorts
    """
    cohort = snapshot.get_cohort(matcher.cohort_id)
    if cohort is None:
        raise RequiresServerEvaluation("cohort %s not found in local cohorts - likely a static cohort that requires server evaluation" % matcher.cohort_id)
    return match_property_group(cohort, properties, snapshot)


def match_property_group(group: PropertyGroup, properties: Dict[str, Any], snapshot: CacheSnapshot) -> bool:
    if group.empty:
        return True

    is_and = group.type == 'AND'
    error_matching_locally = False

    if group.groups:
        for nested in group.groups:
            try:
                matches = match_property_group(nested, properties, snapshot)
            except InconclusiveMatchError as e:
                log.debug("Failed to compute property group locally: %s" % e)
                error_matching_locally = True
                continue
            if is_and and not matches:
                return False
            if not is_and and matches:
                return True
    else:
        for matcher in group.matchers:
            if isinstance(matcher, FlagFilter):
                log.debug("Flag dependency filters are not supported in cohorts; skipping dependency on flag id '%s'" % matcher.flag_id)
                continue
            try:
                if isinstance(matcher, CohortFilter):
                    matches = match_cohort(matcher, properties, snapshot)
                elif isinstance(matcher, PropertyFilter):
                    matches = match_property(matcher.key, matcher.operator, matcher.value, properties)
                else:
                    raise InconclusiveMatchError("Unsupported filter type: %s" % matcher.type)
            except InconclusiveMatchError as e:
                log.debug("Failed to compute property locally: %s" % e)
                error_matching_locally = True
                continue
            if matcher.negation:
                matches = not matches
            if is_and and not matches:
                return False
            if not is_and and matches:
                return True

    if error_matching_locally:
        raise InconclusiveMatchError("Can't match cohort without a given cohort property value")

    # all matched for AND, or none matched for OR
    return is_and
