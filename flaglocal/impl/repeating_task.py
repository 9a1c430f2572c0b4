import asyncio
from typing import Awaitable, Callable, Optional

from flaglocal.impl.util import log


class RepeatingTask:
    """
    Calls a coroutine function repeatedly on the running event loop. Unlike a fixed-rate timer,
    the delay before each run is asked for again after the previous run finishes, so the caller
    can lengthen it (for instance while backing off).
    """

    def __init__(self, label: str, interval: Callable[[], float], initial_delay: float, action: Callable[[], Awaitable]):
        """
        Creates the task, but does not schedule it yet.

        :param label: name given to the underlying asyncio task
        :param interval: returns the time in seconds to wait after each invocation
        :param initial_delay: time in seconds to wait before the first invocation
        :param action: the coroutine function to execute repeatedly
        """
        self.__label = label
        self.__interval = interval
        self.__initial_delay = initial_delay
        self.__action = action
        self.__task: Optional[asyncio.Task] = None
        self.__stopped = False

    @property
    def running(self) -> bool:
        return self.__task is not None and not self.__task.done()

    def start(self):
        """
        Schedules the task on the running event loop. Has no effect if it was already started or stopped.
        """
        if self.__task is not None or self.__stopped:
            return
        self.__task = asyncio.get_running_loop().create_task(self._run(), name=self.__label)

    def stop(self):
        """
        Cancels the task. It cannot be restarted after this.
        """
        self.__stopped = True
        if self.__task is not None:
            self.__task.cancel()

    async def _run(self):
        if self.__initial_delay > 0:
            await asyncio.sleep(self.__initial_delay)
        while not self.__stopped:
            try:
                await self.__action()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.exception("Unexpected exception in %s: %s" % (self.__label, e))
            await asyncio.sleep(self.__interval())
