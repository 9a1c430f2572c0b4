"""
This submodule contains the client class that provides most of the SDK functionality.
"""

from typing import Any, Dict, List, Mapping, NamedTuple, Optional

from flaglocal.config import Config
from flaglocal.context import EvaluationContext
from flaglocal.impl.datasource.coordinator import CacheCoordinator
from flaglocal.impl.datasource.feature_requester import FeatureRequesterImpl
from flaglocal.impl.evaluator import Evaluator, get_payload
from flaglocal.impl.listeners import Listeners
from flaglocal.impl.store import FlagDefinitionStore
from flaglocal.impl.util import log
from flaglocal.interfaces import FeatureRequester, FlagValue
from flaglocal.version import VERSION


class FlagsAndPayloads(NamedTuple):
    """
    The result of evaluating every flag (or a chosen set of flags) for one context.

    :ivar flags: value per flag that could be computed locally
    :ivar payloads: payload per flag whose value has one
    :ivar fallback_to_server: True if some flags could not be computed locally and were left out
    """
    flags: Dict[str, FlagValue]
    payloads: Dict[str, Any]
    fallback_to_server: bool


class FlagClient:
    """The client for evaluating feature flags locally.

    Applications should configure the client at startup time and reuse the same instance for the
    lifetime of the application; every instance runs its own poller.

    All flag checks are coroutines and must be awaited on the event loop that runs the client. The
    first check, or :func:`start()`, begins loading definitions; a check made before any definitions
    are available waits for that first load.
    """

    def __init__(self, config: Config, requester: Optional[FeatureRequester] = None):
        """Constructs a new client instance.

        :param config: the client configuration
        :param requester: replaces the component that fetches flag definitions, overriding
          ``config.feature_requester_class``
        """
        config._validate(log)
        self._config = config
        self.__store = FlagDefinitionStore()
        self.__on_definitions_loaded = Listeners('definitions loaded')
        self.__on_error = Listeners('error')
        self.__evaluator = Evaluator(config.hash_fn, self.__on_error)

        if requester is None:
            if config.feature_requester_class is not None:
                log.info("Using user-specified feature requester: " + str(config.feature_requester_class))
                requester = config.feature_requester_class(config)
            else:
                requester = FeatureRequesterImpl(config)
        self.__requester = requester
        self.__coordinator = CacheCoordinator(config, requester, self.__store, self.__on_definitions_loaded, self.__on_error)
        self.__started = False
        self.__closed = False

    def start(self):
        """Starts polling for flag definitions. Must be called with an event loop running; calling
        it again has no effect.
        """
        if self.__started or self.__closed:
            return
        self.__started = True
        if not self._config.personal_api_key:
            log.warning("No personal API key configured; flags will not be evaluated locally")
            return
        log.info("Starting flaglocal client " + VERSION)
        self.__coordinator.start()

    async def close(self, timeout: Optional[float] = None):
        """Stops polling and releases all resources, including the cache provider.

        :param timeout: the maximum number of seconds to wait for the cache provider to shut down;
          defaults to ``config.shutdown_timeout``
        """
        if self.__closed:
            return
        self.__closed = True
        log.info("Closing flaglocal client..")
        await self.__coordinator.shutdown(timeout)
        await self.__requester.close()

    aclose = close

    async def __aenter__(self) -> 'FlagClient':
        self.start()
        return self

    async def __aexit__(self, type, value, traceback):
        await self.close()

    @property
    def on_definitions_loaded(self) -> Listeners:
        """Listeners called with a :class:`flaglocal.interfaces.DefinitionsLoadedEvent` each time a new
        set of definitions is put into use.
        """
        return self.__on_definitions_loaded

    @property
    def on_error(self) -> Listeners:
        """Listeners called with a :class:`flaglocal.errors.FlagLocalError` whenever loading definitions
        or a cache provider hook fails. Such failures never make a flag check raise.
        """
        return self.__on_error

    def is_local_evaluation_ready(self) -> bool:
        """Returns True if definitions have been loaded and there is at least one flag to evaluate."""
        return self.__coordinator.ready and self.__store.flag_count > 0

    async def wait_until_ready(self, timeout: float = 30) -> bool:
        """Waits until definitions have been loaded, for at most ``timeout`` seconds.

        :return: True if definitions are loaded, False if the timeout expired first
        """
        self.start()
        if not self._config.personal_api_key:
            return False
        return await self.__coordinator.wait_until_ready(timeout)

    async def reload_feature_flags(self):
        """Runs a refresh cycle now instead of waiting for the next poll."""
        self.start()
        if not self._config.personal_api_key:
            return
        await self.__coordinator.load(force=True)

    async def _ensure_loaded(self):
        self.start()
        if self.__closed or not self._config.personal_api_key:
            return
        await self.__coordinator.load()

    async def get_feature_flag(
        self,
        key: str,
        distinct_id: str,
        groups: Optional[Mapping[str, str]] = None,
        person_properties: Optional[Mapping[str, Any]] = None,
        group_properties: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> Optional[FlagValue]:
        """Evaluates a flag for the given person.

        :param key: the unique key for the feature flag
        :param distinct_id: the identifier of the person the flag is evaluated for
        :param groups: group key per group type
        :param person_properties: known person properties
        :param group_properties: known properties per group type
        :return: ``True``/``False``, the key of the matching variant, or None if the flag does not
          exist or cannot be evaluated locally
        """
        context = EvaluationContext(distinct_id, groups, person_properties, group_properties)
        if not context.valid:
            log.warning("Invalid distinct id for evaluation of feature flag \"%s\"; returning None" % key)
            return None
        await self._ensure_loaded()
        try:
            return self.__evaluator.evaluate(self.__store.state, key, context)
        except Exception as e:
            log.error("Unexpected error while evaluating feature flag \"%s\": %s" % (key, repr(e)))
            return None

    async def is_feature_enabled(
        self,
        key: str,
        distinct_id: str,
        groups: Optional[Mapping[str, str]] = None,
        person_properties: Optional[Mapping[str, Any]] = None,
        group_properties: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> Optional[bool]:
        """Like :func:`get_feature_flag()`, but any variant counts as enabled.

        :return: True or False, or None if the flag cannot be evaluated locally
        """
        value = await self.get_feature_flag(key, distinct_id, groups, person_properties, group_properties)
        if value is None:
            return None
        return bool(value)

    async def get_feature_flag_payload(
        self,
        key: str,
        distinct_id: str,
        match_value: Optional[FlagValue] = None,
        groups: Optional[Mapping[str, str]] = None,
        person_properties: Optional[Mapping[str, Any]] = None,
        group_properties: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> Any:
        """Returns the payload configured for the value a flag evaluates to.

        :param match_value: the flag value to look the payload up for; if omitted, the flag is
          evaluated first
        """
        if match_value is None:
            match_value = await self.get_feature_flag(key, distinct_id, groups, person_properties, group_properties)
        else:
            await self._ensure_loaded()
        if match_value is None:
            return None
        flag = self.__store.snapshot.get_flag(key)
        if flag is None:
            return None
        return get_payload(flag, match_value)

    async def get_all_flags(
        self,
        distinct_id: str,
        groups: Optional[Mapping[str, str]] = None,
        person_properties: Optional[Mapping[str, Any]] = None,
        group_properties: Optional[Mapping[str, Mapping[str, Any]]] = None,
        flag_keys_to_evaluate: Optional[List[str]] = None,
    ) -> Dict[str, FlagValue]:
        """Evaluates every flag, or just ``flag_keys_to_evaluate``, for the given person.

        Flags that cannot be computed locally are left out of the result.
        """
        result = await self.get_all_flags_and_payloads(distinct_id, groups, person_properties, group_properties, flag_keys_to_evaluate)
        return result.flags

    async def get_all_flags_and_payloads(
        self,
        distinct_id: str,
        groups: Optional[Mapping[str, str]] = None,
        person_properties: Optional[Mapping[str, Any]] = None,
        group_properties: Optional[Mapping[str, Mapping[str, Any]]] = None,
        flag_keys_to_evaluate: Optional[List[str]] = None,
    ) -> FlagsAndPayloads:
        """Evaluates every flag, or just ``flag_keys_to_evaluate``, and looks up their payloads.

        All flags are evaluated in one pass, so a flag that several others depend on is computed once.
        """
        context = EvaluationContext(distinct_id, groups, person_properties, group_properties)
        if not context.valid:
            log.warning("Invalid distinct id for get_all_flags_and_payloads; returning empty result")
            return FlagsAndPayloads({}, {}, False)

        await self._ensure_loaded()
        if not self.__coordinator.ready:
            log.warning("get_all_flags_and_payloads() called before flag definitions were loaded")
            return FlagsAndPayloads({}, {}, True)

        state = self.__store.state
        keys = flag_keys_to_evaluate if flag_keys_to_evaluate is not None else [flag.key for flag in state.snapshot.flags]
        try:
            evaluation = self.__evaluator.evaluate_flags(state, keys, context)
        except Exception as e:
            log.error("Unexpected error while evaluating all feature flags: %s" % repr(e))
            return FlagsAndPayloads({}, {}, True)

        payloads = {}
        for flag_key, value in evaluation.values.items():
            payload = get_payload(state.snapshot.get_flag(flag_key), value)
            if payload is not None:
                payloads[flag_key] = payload
        return FlagsAndPayloads(dict(evaluation.values), payloads, len(evaluation.failed) > 0)


__all__ = ['FlagClient', 'FlagsAndPayloads']
