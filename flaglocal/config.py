"""
This submodule contains the :class:`Config` class for custom configuration of the SDK client.
"""

from typing import Callable, Dict, Optional

from flaglocal.interfaces import FeatureRequester, FlagDefinitionCacheProvider

DEFAULT_HOST = 'https://us.i.posthog.com'

MIN_POLL_INTERVAL = 5.0


class HTTPConfig:
    """Advanced HTTP configuration options for the SDK client.

    This class groups together HTTP-related configuration properties that rarely need to be changed.
    If you need to set these, construct an ``HTTPConfig`` instance and pass it as the ``http`` parameter when
    you construct the main :class:`Config` for the SDK client.
    """

    def __init__(self, connect_timeout: float = 10, read_timeout: float = 15, custom_headers: Optional[Dict[str, str]] = None):
        """
        :param connect_timeout: The connect timeout for network connections in seconds.
        :param read_timeout: The read timeout for network connections in seconds.
        :param custom_headers: Extra headers sent with every request, for instance to satisfy a proxy.
        """
        self.__connect_timeout = connect_timeout
        self.__read_timeout = read_timeout
        self.__custom_headers = dict(custom_headers or {})

    @property
    def connect_timeout(self) -> float:
        return self.__connect_timeout

    @property
    def read_timeout(self) -> float:
        return self.__read_timeout

    @property
    def custom_headers(self) -> Dict[str, str]:
        return dict(self.__custom_headers)


class Config:
    """Configuration options for the SDK client.

    To use these options, create an instance of ``Config`` and pass it to the
    :class:`flaglocal.client.FlagClient` constructor.
    """

    def __init__(
        self,
        personal_api_key: str,
        project_api_key: str,
        host: str = DEFAULT_HOST,
        poll_interval: float = 30,
        http: HTTPConfig = HTTPConfig(),
        cache_provider: Optional[FlagDefinitionCacheProvider] = None,
        strict_local_evaluation: bool = False,
        feature_requester_class: Optional[Callable[['Config'], FeatureRequester]] = None,
        hash_fn: Optional[Callable[[str, str, str], float]] = None,
        shutdown_timeout: float = 30,
    ):
        """
        :param personal_api_key: A personal API key with permission to read flag definitions. This is
          always required for local evaluation.
        :param project_api_key: The API key of the project whose flags are evaluated.
        :param host: The base URL of the API. Most users should use the default value.
        :param poll_interval: The number of seconds between refreshes of the flag definitions. Values
          below 5 seconds are raised to 5.
        :param http: Optional properties for customizing the client's HTTP behavior. See
          :class:`HTTPConfig`.
        :param cache_provider: An external cache of flag definitions shared between workers. See
          :class:`flaglocal.interfaces.FlagDefinitionCacheProvider`. If omitted, every worker fetches
          definitions from the API itself.
        :param strict_local_evaluation: Set to true if flags that cannot be evaluated locally should
          never be evaluated by other means. This only silences the warning about such flags.
        :param feature_requester_class: A factory for a :class:`flaglocal.interfaces.FeatureRequester`
          implementation taking the config. Mainly useful for testing.
        :param hash_fn: Replaces the function that buckets contexts into rollouts and variants. It
          takes the flag key, the bucketing id and a salt, and must return a float in [0, 1) that is
          the same for the same inputs.
        :param shutdown_timeout: The maximum number of seconds to wait for the cache provider to shut
          down when the client is closed.
        """
        self.__personal_api_key = personal_api_key
        self.__project_api_key = project_api_key
        self.__host = (host or DEFAULT_HOST).rstrip('/')
        self.__poll_interval = max(poll_interval, MIN_POLL_INTERVAL)
        self.__http = http
        self.__cache_provider = cache_provider
        self.__strict_local_evaluation = strict_local_evaluation
        self.__feature_requester_class = feature_requester_class
        self.__hash_fn = hash_fn
        self.__shutdown_timeout = shutdown_timeout

    @property
    def personal_api_key(self) -> str:
        return self.__personal_api_key

    @property
    def project_api_key(self) -> str:
        return self.__project_api_key

    @property
    def host(self) -> str:
        return self.__host

    @property
    def poll_interval(self) -> float:
        return self.__poll_interval

    @property
    def http(self) -> HTTPConfig:
        return self.__http

    @property
    def cache_provider(self) -> Optional[FlagDefinitionCacheProvider]:
        return self.__cache_provider

    @property
    def strict_local_evaluation(self) -> bool:
        return self.__strict_local_evaluation

    @property
    def feature_requester_class(self) -> Optional[Callable[['Config'], FeatureRequester]]:
        return self.__feature_requester_class

    @property
    def hash_fn(self) -> Optional[Callable[[str, str, str], float]]:
        return self.__hash_fn

    @property
    def shutdown_timeout(self) -> float:
        return self.__shutdown_timeout

    def _validate(self, logger):
        if not self.__personal_api_key:
            logger.warning("Missing or blank personal API key; flag definitions cannot be loaded for local evaluation")
        if not self.__project_api_key:
            logger.warning("Missing or blank project API key")
