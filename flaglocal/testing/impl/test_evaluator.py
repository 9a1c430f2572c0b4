from flaglocal.errors import FlagEvaluationError
from flaglocal.impl.evaluator import Evaluator, default_hash, get_payload
from flaglocal.impl.listeners import Listeners
from flaglocal.testing.builders import *
from flaglocal.testing.impl.evaluator_util import *
from flaglocal.testing.stub_util import SpyListener

evaluator = Evaluator()


def test_default_hash_is_deterministic_and_in_range():
    value = default_hash('flag', 'user-1')
    assert value == default_hash('flag', 'user-1')
    assert 0 <= value < 1
    assert value != default_hash('flag', 'user-2')
    assert value != default_hash('flag', 'user-1', 'variant')


def test_default_hash_distribution_matches_rollout():
    in_rollout = sum(1 for i in range(1000) if default_hash('rollout-flag', 'user-%d' % i) <= 0.2)
    assert 150 < in_rollout < 250


def test_full_rollout_is_enabled():
    state = make_state(FlagBuilder('flag', id=1).rollout(100))
    assert evaluator.evaluate(state, 'flag', make_context()) is True


def test_zero_rollout_is_disabled():
    state = make_state(FlagBuilder('flag', id=1).rollout(0))
    assert Evaluator(fixed_hash(0.3)).evaluate(state, 'flag', make_context()) is False


def test_partial_rollout_uses_hash():
    state = make_state(FlagBuilder('flag', id=1).rollout(30))
    assert Evaluator(fixed_hash(0.3)).evaluate(state, 'flag', make_context()) is True
    assert Evaluator(fixed_hash(0.31)).evaluate(state, 'flag', make_context()) is False


def test_condition_without_rollout_matches_on_properties_alone():
    state = make_state(FlagBuilder('flag', id=1).condition(ConditionBuilder().property('plan', 'pro').rollout(None).build()))
    assert Evaluator(fixed_hash(0.99)).evaluate(state, 'flag', make_context(person_properties={'plan': 'pro'})) is True


def test_flag_without_conditions_is_disabled():
    state = make_state(FlagBuilder('flag', id=1))
    assert evaluator.evaluate(state, 'flag', make_context()) is False


def test_inactive_flag_is_disabled():
    state = make_state(FlagBuilder('flag', id=1).rollout(100).active(False))
    assert evaluator.evaluate(state, 'flag', make_context()) is False


def test_unknown_flag_is_undefined():
    state = make_state(FlagBuilder('flag', id=1).rollout(100))
    assert evaluator.evaluate(state, 'other', make_context()) is None


def test_deleted_flag_is_undefined():
    state = make_state(FlagBuilder('flag', id=1).rollout(100).deleted(True))
    assert evaluator.evaluate(state, 'flag', make_context()) is None


def test_experience_continuity_flag_is_undefined():
    state = make_state(FlagBuilder('flag', id=1).rollout(100).experience_continuity(True))
    assert evaluator.evaluate(state, 'flag', make_context()) is None


def test_property_condition():
    state = make_state(FlagBuilder('flag', id=1).condition(ConditionBuilder().property('email', '@example.com', 'icontains').build()))
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={'email': 'a@example.com'})) is True
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={'email': 'a@other.com'})) is False


def test_missing_property_is_undefined():
    state = make_state(FlagBuilder('flag', id=1).condition(ConditionBuilder().property('email', 'x').build()))
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={})) is None


def test_later_condition_can_match_after_inconclusive_one():
    state = make_state(
        FlagBuilder('flag', id=1)
        .condition(ConditionBuilder().property('email', 'x').build())
        .condition(ConditionBuilder().property('plan', 'pro').build())
    )
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={'plan': 'pro'})) is True
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={'plan': 'free'})) is None


def test_all_matchers_in_condition_must_match():
    state = make_state(FlagBuilder('flag', id=1).condition(ConditionBuilder().property('a', 1).property('b', 2).build()))
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={'a': 1, 'b': 2})) is True
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={'a': 1, 'b': 3})) is False


def test_negated_property():
    state = make_state(FlagBuilder('flag', id=1).condition(ConditionBuilder().property('plan', 'free', negation=True).build()))
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={'plan': 'pro'})) is True
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={'plan': 'free'})) is False


def test_unknown_filter_type_makes_condition_inconclusive():
    state = make_state(
        FlagBuilder('flag', id=1)
        .condition({'properties': [{'key': 'a', 'value': 'b', 'type': 'mystery'}], 'rollout_percentage': 100})
        .condition(ConditionBuilder().property('plan', 'pro').build())
    )
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={'plan': 'pro'})) is True
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={'plan': 'free'})) is None


def test_variant_is_chosen_by_variant_hash():
    flag = FlagBuilder('flag', id=1).rollout(100).variant('control', 40).variant('test', 60)
    state = make_state(flag)
    assert Evaluator(fixed_hash(0.1, 0.39)).evaluate(state, 'flag', make_context()) == 'control'
    assert Evaluator(fixed_hash(0.1, 0.4)).evaluate(state, 'flag', make_context()) == 'test'


def test_condition_variant_override():
    flag = FlagBuilder('flag', id=1).condition(ConditionBuilder().variant('test').build()).variant('control', 100).variant('test', 0)
    assert evaluator.evaluate(make_state(flag), 'flag', make_context()) == 'test'


def test_condition_variant_override_for_unknown_variant_is_ignored():
    flag = FlagBuilder('flag', id=1).condition(ConditionBuilder().variant('nope').build()).variant('control', 100)
    assert evaluator.evaluate(make_state(flag), 'flag', make_context()) == 'control'


def test_group_flag_is_disabled_without_group():
    state = make_state(FlagBuilder('flag', id=1).rollout(100).group_type_index(0), group_type_mapping={'0': 'company'})
    assert evaluator.evaluate(state, 'flag', make_context()) is False


def test_group_flag_with_unknown_group_type_is_undefined():
    state = make_state(FlagBuilder('flag', id=1).rollout(100).group_type_index(3), group_type_mapping={'0': 'company'})
    assert evaluator.evaluate(state, 'flag', make_context(groups={'company': 'acme'})) is None


def test_group_flag_matches_group_properties_and_buckets_by_group_key():
    bucketed = []

    def hash_fn(flag_key, bucketing_id, salt=''):
        bucketed.append(bucketing_id)
        return 0.5

    flag = FlagBuilder('flag', id=1).condition(ConditionBuilder().property('size', 10, 'gt', type='group').build()).group_type_index(0)
    state = make_state(flag, group_type_mapping={'0': 'company'})
    context = make_context(groups={'company': 'acme'}, person_properties={'size': 1}, group_properties={'company': {'size': 20}})
    assert Evaluator(hash_fn).evaluate(state, 'flag', context) is True
    assert set(bucketed) == {'acme'}


def test_cohort_condition():
    cohorts = {'5': {'type': 'OR', 'values': [{'type': 'AND', 'values': [make_property('country', 'US', type=None)]}]}}
    state = make_state(FlagBuilder('flag', id=1).condition(ConditionBuilder().cohort(5).build()), cohorts=cohorts)
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={'country': 'US'})) is True
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={'country': 'FR'})) is False
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={})) is None


def test_negated_property_inside_cohort():
    cohorts = {'5': {'type': 'AND', 'values': [make_property('country', 'US', type=None, negation=True)]}}
    state = make_state(FlagBuilder('flag', id=1).condition(ConditionBuilder().cohort(5).build()), cohorts=cohorts)
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={'country': 'FR'})) is True


def test_cohort_referencing_cohort():
    cohorts = {
        '5': {'type': 'AND', 'values': [{'key': 'id', 'type': 'cohort', 'value': 6}]},
        '6': {'type': 'AND', 'values': [make_property('plan', 'pro', type=None)]},
    }
    state = make_state(FlagBuilder('flag', id=1).condition(ConditionBuilder().cohort(5).build()), cohorts=cohorts)
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={'plan': 'pro'})) is True


def test_unknown_cohort_requires_server_evaluation():
    state = make_state(FlagBuilder('flag', id=1).condition(ConditionBuilder().cohort(99).build()))
    result = evaluator.evaluate_flags(state, ['flag'], make_context())
    assert result.values == {}
    assert result.failed == {'flag'}


def test_flag_filter_inside_cohort_is_skipped():
    cohorts = {'5': {'type': 'AND', 'values': [{'key': '2', 'type': 'flag', 'value': True}, make_property('plan', 'pro', type=None)]}}
    state = make_state(FlagBuilder('flag', id=1).condition(ConditionBuilder().cohort(5).build()), cohorts=cohorts)
    assert evaluator.evaluate(state, 'flag', make_context(person_properties={'plan': 'pro'})) is True


def make_chain():
    # a depends on b being enabled, b depends on c being the variant "x"
    return make_state(
        FlagBuilder('a', id=1).condition(ConditionBuilder().depends_on(2, True).build()),
        FlagBuilder('b', id=2).condition(ConditionBuilder().depends_on(3, 'x').build()),
        FlagBuilder('c', id=3).condition(ConditionBuilder().property('plan', 'pro').variant('x').build()).variant('x', 0).variant('y', 100),
    )


def test_dependency_chain():
    state = make_chain()
    context = make_context(person_properties={'plan': 'pro'})
    assert evaluator.evaluate(state, 'c', context) == 'x'
    assert evaluator.evaluate(state, 'b', context) is True
    assert evaluator.evaluate(state, 'a', context) is True


def test_dependency_chain_not_matching():
    state = make_chain()
    context = make_context(person_properties={'plan': 'free'})
    result = evaluator.evaluate_flags(state, ['a', 'b', 'c'], context)
    assert result.values == {'a': False, 'b': False, 'c': False}
    assert result.failed == set()


def test_failed_dependency_makes_dependents_undefined():
    state = make_chain()
    result = evaluator.evaluate_flags(state, ['a', 'b', 'c'], make_context(person_properties={}))
    assert result.values == {}
    assert result.failed == {'a', 'b', 'c'}


def test_dependency_on_false():
    state = make_state(
        FlagBuilder('a', id=1).condition(ConditionBuilder().depends_on(2, False).build()),
        FlagBuilder('b', id=2).condition(ConditionBuilder().property('plan', 'pro').build()),
    )
    assert evaluator.evaluate(state, 'a', make_context(person_properties={'plan': 'free'})) is True
    assert evaluator.evaluate(state, 'a', make_context(person_properties={'plan': 'pro'})) is False


def test_negated_dependency():
    state = make_state(
        FlagBuilder('a', id=1).condition(ConditionBuilder().depends_on(2, True, negation=True).build()),
        FlagBuilder('b', id=2).rollout(100),
    )
    assert evaluator.evaluate(state, 'a', make_context()) is False


def test_dependency_on_unknown_flag_is_undefined():
    state = make_state(FlagBuilder('a', id=1).condition(ConditionBuilder().depends_on(99).build()))
    assert evaluator.evaluate(state, 'a', make_context()) is None


def test_dependency_with_unsupported_operator_is_undefined():
    condition = {'properties': [{'key': '2', 'type': 'flag', 'value': True, 'operator': 'exact'}], 'rollout_percentage': 100}
    state = make_state(FlagBuilder('a', id=1).condition(condition), FlagBuilder('b', id=2).rollout(100))
    assert evaluator.evaluate(state, 'a', make_context()) is None


def test_cyclic_flags_are_undefined_and_others_still_evaluate():
    state = make_state(
        FlagBuilder('a', id=1).condition(ConditionBuilder().depends_on(2).build()),
        FlagBuilder('b', id=2).condition(ConditionBuilder().depends_on(1).build()),
        FlagBuilder('c', id=3).condition(ConditionBuilder().depends_on(1).build()),
        FlagBuilder('d', id=4).rollout(100),
    )
    assert state.removed_flags == {'a', 'b'}
    result = evaluator.evaluate_flags(state, ['a', 'b', 'c', 'd'], make_context())
    assert result.values == {'d': True}
    assert result.failed == {'a', 'b', 'c'}


def test_shared_dependency_is_evaluated_once_per_pass():
    calls = []

    def hash_fn(flag_key, bucketing_id, salt=''):
        calls.append((flag_key, salt))
        return 0.0

    state = make_state(
        FlagBuilder('a', id=1).condition(ConditionBuilder().depends_on(3).build()),
        FlagBuilder('b', id=2).condition(ConditionBuilder().depends_on(3).build()),
        FlagBuilder('c', id=3).rollout(100),
    )
    result = Evaluator(hash_fn).evaluate_flags(state, ['a', 'b', 'c'], make_context())
    assert result.values == {'a': True, 'b': True, 'c': True}
    assert calls.count(('c', '')) == 1


def test_evaluation_pass_only_reports_requested_flags():
    state = make_state(
        FlagBuilder('a', id=1).condition(ConditionBuilder().depends_on(2).build()),
        FlagBuilder('b', id=2).rollout(100),
        FlagBuilder('broken', id=3).condition(ConditionBuilder().property('missing', 1).build()),
    )
    result = evaluator.evaluate_flags(state, ['a'], make_context())
    assert result.values == {'a': True}
    assert result.failed == set()


def test_passes_do_not_share_results():
    state = make_state(FlagBuilder('a', id=1).condition(ConditionBuilder().property('plan', 'pro').build()))
    assert evaluator.evaluate(state, 'a', make_context(person_properties={'plan': 'pro'})) is True
    assert evaluator.evaluate(state, 'a', make_context(person_properties={'plan': 'free'})) is False
    assert state.graph.has_cached_result('a') is False


def test_get_payload():
    flag = FlagBuilder('flag', id=1).payload('true', '{"color": "blue"}').payload('test', 'plain text').payload('control', {'a': 1}).build()
    assert get_payload(flag, True) == {'color': 'blue'}
    assert get_payload(flag, 'test') == 'plain text'
    assert get_payload(flag, 'control') == {'a': 1}
    assert get_payload(flag, 'other') is None
    assert get_payload(flag, False) is None
    assert get_payload(flag, None) is None


def test_unexpected_error_in_one_flag_does_not_affect_the_others():
    def hash_fn(flag_key, bucketing_id, salt=''):
        if flag_key == 'bad':
            raise RuntimeError('hash failed')
        return 0.0

    errors = SpyListener()
    on_error = Listeners('error')
    on_error.add(errors)
    state = make_state(
        FlagBuilder('plain', id=1).rollout(100),
        FlagBuilder('bad', id=2).rollout(100),
        FlagBuilder('depends-on-bad', id=3).condition(ConditionBuilder().depends_on(2).build()),
    )
    result = Evaluator(hash_fn, on_error).evaluate_flags(state, ['plain', 'bad', 'depends-on-bad'], make_context())
    assert result.values == {'plain': True}
    assert result.failed == {'bad', 'depends-on-bad'}
    assert len(errors.values) == 1
    assert isinstance(errors.values[0], FlagEvaluationError)
    assert errors.values[0].flag_key == 'bad'
    assert str(errors.values[0]) == 'Error computing flag locally: bad'
    assert isinstance(errors.values[0].cause, RuntimeError)
