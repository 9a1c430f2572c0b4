"""
This submodule contains interfaces for components that the host application can supply to the SDK.

They may be useful in writing new implementations of these components, or for testing.
"""

from abc import ABCMeta, abstractmethod
from typing import (Any, Awaitable, Dict, List, Optional, TypedDict, Union)

FlagValue = Union[bool, str]
"""The result of evaluating a flag: ``True``/``False``, or the key of a multivariate variant."""


class FlagDefinitionCacheData(TypedDict):
    """
    The flag definitions shared between workers through a :class:`FlagDefinitionCacheProvider`.
    This is the same data the definitions endpoint returns, as plain JSON-compatible values.
    """

    flags: List[Dict[str, Any]]
    group_type_mapping: Dict[str, str]
    cohorts: Dict[str, Any]


class FlagDefinitionCacheProvider(metaclass=ABCMeta):
    """
    Interface for an external cache of flag definitions, shared by several workers (processes,
    containers, serverless instances) so that they do not all have to fetch definitions from the API.

    Every method may be implemented either as a regular method or as a coroutine; the SDK awaits the
    result when it is awaitable. Every method may also fail: errors are reported to the client's
    error listeners and never break flag evaluation.

    - if :func:`should_fetch_flag_definitions()` fails, the worker fetches
    - if :func:`get_flag_definitions()` fails, the worker fetches
    - if :func:`on_flag_definitions_received()` fails, the fetched definitions are still used in memory
    - if :func:`shutdown()` fails, client shutdown continues
    """

    @abstractmethod
    def get_flag_definitions(self) -> Union[Optional[FlagDefinitionCacheData], Awaitable[Optional[FlagDefinitionCacheData]]]:
        """
        Returns the cached definitions, or None if there are none.

        Returning None when this worker has never loaded definitions makes it fetch from the API
        even though :func:`should_fetch_flag_definitions()` said not to.
        """

    @abstractmethod
    def should_fetch_flag_definitions(self) -> Union[bool, Awaitable[bool]]:
        """
        Decides whether this worker should fetch definitions from the API on this cycle. A typical
        implementation takes a distributed lock that expires after the poll interval, so that only one
        worker fetches at a time. When it returns False the worker reads the cache instead.
        """

    @abstractmethod
    def on_flag_definitions_received(self, data: FlagDefinitionCacheData) -> Union[None, Awaitable[None]]:
        """
        Called after this worker fetched new definitions because :func:`should_fetch_flag_definitions()`
        told it to. Store the data for other workers and release any lock taken.
        """

    @abstractmethod
    def shutdown(self) -> Union[None, Awaitable[None]]:
        """
        Called when the client shuts down. Release any lock and other resources. This is called even
        if no lock was ever taken.
        """


class FetchResponse:
    """
    The outcome of one request for flag definitions.
    """

    def __init__(self, status: int, data: Optional[dict] = None, etag: Optional[str] = None):
        self.__status = status
        self.__data = data
        self.__etag = etag

    @property
    def status(self) -> int:
        """
        :return: the HTTP status of the response
        """
        return self.__status

    @property
    def data(self) -> Optional[dict]:
        """
        :return: the decoded JSON body for a 200 response, otherwise None
        """
        return self.__data

    @property
    def etag(self) -> Optional[str]:
        """
        :return: the ``ETag`` response header, if the server sent one
        """
        return self.__etag


class FeatureRequester(metaclass=ABCMeta):
    """
    Interface for the component that requests flag definitions from the API. The default
    implementation can be replaced for testing purposes.
    """

    @abstractmethod
    async def get_flag_definitions(self, etag: Optional[str] = None) -> FetchResponse:
        """
        Requests the current flag definitions.

        :param etag: the ETag of the last definitions received, to be sent as ``If-None-Match``
        """

    async def close(self):
        """
        Releases any connections held by the requester.
        """
        pass


class DefinitionsLoadedEvent:
    """
    Passed to :py:attr:`flaglocal.client.FlagClient.on_definitions_loaded` listeners whenever a new
    set of flag definitions is put into use.
    """

    def __init__(self, flag_count: int, from_cache: bool):
        self.__flag_count = flag_count
        self.__from_cache = from_cache

    @property
    def flag_count(self) -> int:
        """
        :return: the number of flag definitions now in use
        """
        return self.__flag_count

    @property
    def from_cache(self) -> bool:
        """
        :return: True if the definitions came from the cache provider rather than the API
        """
        return self.__from_cache

    def __repr__(self) -> str:
        return 'DefinitionsLoadedEvent(flag_count=%d, from_cache=%s)' % (self.__flag_count, self.__from_cache)
