import inspect
import logging
from typing import Any, Awaitable, Callable, Union

log = logging.getLogger('flaglocal')

# Statuses that put the poller into backoff rather than being treated as an outage
_BACKOFF_STATUSES = [401, 403, 429]

_RETRYABLE_STATUSES = [400, 408, 429]


async def maybe_await(fn: Callable[..., Union[Any, Awaitable[Any]]], *args) -> Any:
    """
    Calls a collaborator method that may be implemented either synchronously or as a coroutine,
    and always returns the resolved value.
    """
    result = fn(*args)
    if inspect.isawaitable(result):
        return await result
    return result


def is_http_error_recoverable(status):
    if status >= 400 and status < 500:
        return status in _RETRYABLE_STATUSES  # all other 4xx besides these are unrecoverable
    return True  # all other errors are recoverable


def should_back_off(status) -> bool:
    return status in _BACKOFF_STATUSES


def http_error_description(status):
    return "HTTP error %d%s" % (status, " (invalid API key)" if (status == 401 or status == 403) else "")


def http_error_message(status, context, retryable_message="will retry"):
    return "Received %s for %s - %s" % (http_error_description(status), context, retryable_message if is_http_error_recoverable(status) else "keeping current definitions until the next poll")
