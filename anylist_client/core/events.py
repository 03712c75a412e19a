"""
Notification of subscribers when data changes remotely.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from logging import Logger

__all__ = [
    "UpdateEvent",
    "Subscription",
]

type Callback[PayloadT] = Callable[[PayloadT], Awaitable[None] | None]


class Subscription[PayloadT]:
    """
    Registration of a callback with an {obj}`UpdateEvent`. Cancel it to stop
    receiving updates; it can also be used as a context manager which
    cancels it upon exit.
    """

    _event: UpdateEvent[PayloadT]
    callback: Callback[PayloadT]

    def __init__(self, event: UpdateEvent[PayloadT], callback: Callback[PayloadT]):
        self._event = event
        self.callback = callback

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, traceback):
        self.cancel()

    @property
    def active(self) -> bool:
        return self in self._event._subscriptions

    def cancel(self):
        """
        Stop delivering updates to this subscription's callback. No-op if
        already cancelled.
        """
        if self.active:
            self._event._subscriptions.remove(self)


class UpdateEvent[PayloadT]:
    """
    Event fired with a payload, e.g. the refreshed shopping lists. Callbacks
    may be plain functions or coroutine functions.
    """

    _name: str
    _subscriptions: list[Subscription[PayloadT]]
    _logger: Logger

    def __init__(self, name: str, *, logger: Logger | None = None):
        self._name = name
        self._subscriptions = []
        self._logger = logger or logging.getLogger("anylist_client")

    def __str__(self):
        return f"UpdateEvent({self._name})"

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, callback: Callback[PayloadT]) -> Subscription[PayloadT]:
        """
        Register callback to be invoked upon each update.
        """
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        return subscription

    async def emit(self, payload: PayloadT):
        """
        Invoke all callbacks in order of subscription. A failing callback is
        logged and doesn't prevent others from being invoked.
        """
        self._logger.debug(
            f"Emitting {self._name} to {self.subscriber_count} subscribers"
        )

        # copy since callbacks may cancel their subscriptions
        for subscription in list(self._subscriptions):
            try:
                result = subscription.callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                self._logger.exception(f"Subscriber to {self._name} failed")
