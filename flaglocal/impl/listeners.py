from typing import Any, Callable, List

from flaglocal.impl.util import log


class Listeners:
    """
    A list of callbacks that each receive a single value. Callbacks run synchronously, in the
    order they were added, on whatever task calls :func:`notify()`.
    """

    def __init__(self, name: str):
        self.__name = name
        self.__listeners: List[Callable[[Any], None]] = []

    def has_listeners(self) -> bool:
        return len(self.__listeners) > 0

    def add(self, listener: Callable[[Any], None]) -> Callable[[], None]:
        """
        Registers a listener.

        :return: a function that removes the listener again
        """
        self.__listeners.append(listener)
        return lambda: self.remove(listener)

    def remove(self, listener: Callable[[Any], None]):
        try:
            self.__listeners.remove(listener)
        except ValueError:
            pass  # removing a listener that wasn't in the list is a no-op

    def notify(self, value: Any):
        # copied so that a listener can unsubscribe itself while being notified
        for listener in list(self.__listeners):
            try:
                listener(value)
            except Exception as e:
                log.exception("Unexpected error in %s listener: %s" % (self.__name, e))
