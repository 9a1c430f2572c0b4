"""
Keeps the flag definitions in the store up to date, either from the API or from a cache provider
shared with other workers.
"""

import asyncio
import inspect
import time
from typing import Mapping, Optional

from flaglocal.config import Config
from flaglocal.errors import (CacheProviderError, CacheReadError,
                              CacheShutdownError, CacheWriteError,
                              ClientError, CoordinationError,
                              FlagLocalError, InvalidResponseError)
from flaglocal.impl.listeners import Listeners
from flaglocal.impl.repeating_task import RepeatingTask
from flaglocal.impl.store import CacheSnapshot, FlagDefinitionStore
from flaglocal.impl.util import (http_error_message, log, maybe_await,
                                 should_back_off)
from flaglocal.interfaces import DefinitionsLoadedEvent, FeatureRequester

MAX_BACKOFF_INTERVAL = 60.0

_BACKOFF_MESSAGES = {
    401: "Your project key or personal API key is invalid.",
    403: "Your personal API key does not have permission to fetch feature flag definitions for local evaluation.",
    429: "You are being rate limited.",
}


class CacheCoordinator:
    """
    Decides on each refresh cycle whether to use definitions from the cache provider or fetch them
    from the API, and puts the result into the :class:`FlagDefinitionStore`.

    All state belongs to the instance: two clients never share a poller or an in-flight load.
    """

    def __init__(self, config: Config, requester: FeatureRequester, store: FlagDefinitionStore, on_load: Listeners, on_error: Listeners):
        self._config = config
        self._requester = requester
        self._store = store
        self._cache_provider = config.cache_provider
        self._on_load = on_load
        self._on_error = on_error
        self._loaded_successfully_once = False
        self._ready = asyncio.Event()
        self._loading: Optional[asyncio.Task] = None
        self._etag: Optional[str] = None
        self._backoff_count = 0
        self._next_fetch_allowed_at: Optional[float] = None
        self._stopped = False
        self._task = RepeatingTask("flaglocal.poller", self.current_poll_interval, 0, self._poll)

    def start(self):
        if self._stopped or self._task.running:
            return
        log.info("Starting flag definitions poller with request interval: %s" % self._config.poll_interval)
        self._task.start()

    @property
    def ready(self) -> bool:
        """
        True once definitions have been loaded successfully; a later failed refresh does not undo it.
        """
        return self._loaded_successfully_once

    def current_poll_interval(self) -> float:
        if self._backoff_count == 0:
            return self._config.poll_interval
        return min(MAX_BACKOFF_INTERVAL, self._config.poll_interval * (2 ** self._backoff_count))

    async def wait_until_ready(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError:
            pass
        return self.ready

    async def load(self, force: bool = False):
        """
        Runs a refresh cycle, unless definitions are already loaded and ``force`` is False. Callers that
        arrive while a cycle is in flight wait for that cycle instead of starting another.
        """
        if self._loaded_successfully_once and not force:
            return
        if not force and self._next_fetch_allowed_at is not None and time.monotonic() < self._next_fetch_allowed_at:
            log.debug("Skipping flag definitions load during backoff")
            return
        if self._stopped:
            return

        if self._loading is None:
            self._loading = asyncio.get_running_loop().create_task(self._run_load(), name="flaglocal.load")
        loading = self._loading
        # shielded so that one caller being cancelled does not cancel the load for everyone else
        try:
            await asyncio.shield(loading)
        except asyncio.CancelledError:
            # the load itself was cancelled by shutdown, not the caller
            if not loading.cancelled():
                raise
            log.debug("Flag definitions load cancelled by shutdown")

    async def _poll(self):
        await self.load(force=True)

    async def _run_load(self):
        try:
            await self._load_definitions()
        except FlagLocalError as e:
            self._report(e)
        except Exception as e:
            log.warning("Failed to load flag definitions: %s" % e)
        finally:
            self._loading = None

    async def _load_definitions(self):
        should_fetch = True
        if self._cache_provider is not None:
            try:
                should_fetch = bool(await maybe_await(self._cache_provider.should_fetch_flag_definitions))
            except Exception as e:
                # fail open: fetching is always safe
                self._report(CoordinationError(e))

        if not should_fetch:
            loaded = await self._load_from_cache()
            if loaded is True:
                return
            if loaded is False:
                if self._loaded_successfully_once:
                    # another worker is responsible for fetching; keep what we have, even if stale
                    return
                log.warning("Cache provider has no flag definitions and none are loaded; fetching from the API despite should_fetch_flag_definitions")
            # loaded is None: the cache read failed, so fetch

        response = await self._requester.get_flag_definitions(self._etag)
        status = response.status

        if status == 304:
            log.debug("Flag definitions not modified (304), keeping current definitions")
            self._etag = response.etag or self._etag
            self._mark_loaded()
            self._clear_backoff()
            return

        if should_back_off(status):
            self._begin_backoff()
            raise ClientError("%s Setting next polling interval to %ss." % (_BACKOFF_MESSAGES[status], self.current_poll_interval()), status)

        if status == 402:
            log.warning("Feature flags quota limit exceeded - unsetting all local flag definitions")
            self._store.clear()
            return

        if status != 200:
            log.warning(http_error_message(status, "flag definitions request"))
            return

        data = response.data
        if not isinstance(data, Mapping) or 'flags' not in data:
            raise InvalidResponseError("Invalid response when getting flag definitions: %s" % (data,))

        self._etag = response.etag
        merge = bool(data.get('errors_while_computing_flags') or data.get('errorsWhileComputingFlags'))
        if merge:
            log.warning("Errors while computing flag definitions; keeping previously loaded definitions that are missing")
        self._store.update(CacheSnapshot.from_data(data), merge=merge)
        self._clear_backoff()
        self._mark_loaded()

        # only a worker that was told to fetch writes to the cache; after an emergency fetch it may not hold the lock
        if self._cache_provider is not None and should_fetch:
            try:
                await maybe_await(self._cache_provider.on_flag_definitions_received, self._store.snapshot.to_cache_data())
            except Exception as e:
                self._report(CacheWriteError(e))

        self._definitions_loaded(from_cache=False)

    async def _load_from_cache(self) -> Optional[bool]:
        """
        :return: True if definitions were loaded from the cache provider, False if it had none, or
            None if reading it failed
        """
        try:
            cached = await maybe_await(self._cache_provider.get_flag_definitions)
            if cached is None:
                return False
            if not isinstance(cached, Mapping):
                raise TypeError("expected flag definitions mapping, got %s" % type(cached).__name__)
            snapshot = CacheSnapshot.from_data(cached)
        except Exception as e:
            self._report(CacheReadError(e))
            return None

        self._store.update(snapshot)
        self._mark_loaded()
        log.debug("Loaded flag definitions from cache (skipped fetch) (%d flags)" % self._store.flag_count)
        self._definitions_loaded(from_cache=True)
        return True

    def _mark_loaded(self):
        if not self._loaded_successfully_once:
            log.info("Flag definitions loaded for local evaluation")
        self._loaded_successfully_once = True
        self._ready.set()

    def _definitions_loaded(self, from_cache: bool):
        self._warn_about_experience_continuity_flags()
        self._on_load.notify(DefinitionsLoadedEvent(self._store.flag_count, from_cache))

    def _warn_about_experience_continuity_flags(self):
        if self._config.strict_local_evaluation:
            return
        keys = [flag.key for flag in self._store.snapshot.flags if flag.ensure_experience_continuity]
        if keys:
            log.warning(
                "%d flag(s) have experience continuity enabled, which cannot be evaluated locally: %s. "
                "These flags evaluate as undefined." % (len(keys), ', '.join(keys))
            )

    def _begin_backoff(self):
        self._backoff_count += 1
        self._next_fetch_allowed_at = time.monotonic() + self.current_poll_interval()

    def _clear_backoff(self):
        self._backoff_count = 0
        self._next_fetch_allowed_at = None

    def _report(self, error: FlagLocalError):
        if isinstance(error, CacheProviderError):
            log.warning(str(error))
        else:
            log.error(str(error))
        self._on_error.notify(error)

    async def shutdown(self, timeout: Optional[float] = None):
        """
        Stops polling and shuts down the cache provider, waiting at most ``timeout`` seconds for it.
        """
        if self._stopped:
            return
        self._stopped = True
        log.info("Stopping flag definitions poller")
        self._task.stop()
        if self._loading is not None:
            self._loading.cancel()

        if self._cache_provider is None:
            return
        timeout = self._config.shutdown_timeout if timeout is None else timeout
        try:
            result = self._cache_provider.shutdown()
            if inspect.isawaitable(result):
                await asyncio.wait_for(result, timeout)
        except asyncio.TimeoutError:
            self._report(CacheShutdownError(detail="Cache shutdown timeout after %ss" % timeout))
        except Exception as e:
            self._report(CacheShutdownError(e))
