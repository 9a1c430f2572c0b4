"""
This submodule contains the errors reported by the SDK.

None of these are raised out of flag checks. Failures of the cache provider, of the definitions
request and of individual flag evaluations are delivered to the listeners registered with
:py:attr:`flaglocal.client.FlagClient.on_error`.
"""

from typing import Optional


class FlagLocalError(Exception):
    """Base class for all errors reported by the SDK."""


class ClientError(FlagLocalError):
    """
    The definitions endpoint rejected the request because the API key is invalid, lacks permission, or
    is being rate limited.
    """

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


class InvalidResponseError(FlagLocalError):
    """The definitions endpoint returned a body that does not contain flag definitions."""


class CacheProviderError(FlagLocalError):
    """
    Base class for failures of a :class:`flaglocal.interfaces.FlagDefinitionCacheProvider` hook.

    :ivar cause: the exception raised by the provider, if any
    """

    prefix = 'Cache provider error'

    def __init__(self, cause: Optional[BaseException] = None, detail: Optional[str] = None):
        message = self.prefix
        if detail is not None:
            message += ': %s' % detail
        elif cause is not None:
            message += ': %s' % cause
        super().__init__(message)
        self.cause = cause


class CacheReadError(CacheProviderError):
    """``get_flag_definitions`` failed; definitions are fetched from the API instead."""

    prefix = 'Failed to load from cache'


class CoordinationError(CacheProviderError):
    """``should_fetch_flag_definitions`` failed; the worker fetches as if it had been told to."""

    prefix = 'Error in should_fetch_flag_definitions'


class CacheWriteError(CacheProviderError):
    """``on_flag_definitions_received`` failed; the fetched definitions are still used in memory."""

    prefix = 'Failed to store in cache'


class CacheShutdownError(CacheProviderError):
    """``shutdown`` failed or did not finish in time; client shutdown continues regardless."""

    prefix = 'Error during cache shutdown'


class DependencyGraphError(FlagLocalError):
    """Base class for errors in the flag dependency graph."""


class CyclicDependencyError(DependencyGraphError):
    """
    Raised by :func:`flaglocal.impl.dependency_graph.DependencyGraph.topological_sort()` when the graph
    still contains a cycle. Graphs produced by ``build_dependency_graph`` have their cycles removed, so
    this indicates the graph was modified afterwards.
    """

    def __init__(self, flag_key: str):
        self.flag_key = flag_key
        super().__init__("Cyclic dependency detected involving flag: %s" % flag_key)


class FlagEvaluationError(FlagLocalError):
    """
    An unexpected failure while computing one flag locally. The flag is left out of the result and
    the other flags are still evaluated.

    :ivar cause: the exception raised while computing the flag
    """

    def __init__(self, flag_key: str, cause: BaseException):
        super().__init__("Error computing flag locally: %s" % flag_key)
        self.flag_key = flag_key
        self.cause = cause
