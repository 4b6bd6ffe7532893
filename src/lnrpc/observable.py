"""
Cold, single-shot push sequences returned for streaming procedures.
Nothing happens until ``subscribe`` is called; the producer then pushes
next/error/complete notifications through the ``Subscription``.
"""

import asyncio
import typing as t
from collections.abc import AsyncIterator
from enum import StrEnum

import structlog

log = structlog.get_logger(__name__)

T = t.TypeVar(name="T")

_NEXT = "next"
_ERROR = "error"
_COMPLETED = "completed"


class SequenceState(StrEnum):
    created = "created"
    active = "active"
    completed = "completed"
    errored = "errored"


class Observer(t.Protocol[T]):
    def on_next(self, value: T) -> None: ...

    def on_error(self, error: BaseException) -> None: ...

    def on_completed(self) -> None: ...


class _CallbackObserver:
    def __init__(
        self,
        on_next: t.Callable[[t.Any], None] | None = None,
        on_error: t.Callable[[BaseException], None] | None = None,
        on_completed: t.Callable[[], None] | None = None,
    ) -> None:
        self._on_next = on_next
        self._on_error = on_error
        self._on_completed = on_completed

    def on_next(self, value: t.Any) -> None:
        if self._on_next is not None:
            self._on_next(value)

    def on_error(self, error: BaseException) -> None:
        if self._on_error is None:
            log.warning("Unhandled error notification", error=repr(error))
            return
        self._on_error(error)

    def on_completed(self) -> None:
        if self._on_completed is not None:
            self._on_completed()


class Subscription:
    """
    Link between a producer and one observer.

    The producer calls ``next``, ``error`` and ``complete``; the consumer may
    call ``unsubscribe`` to stop receiving notifications. Once the sequence
    reached a terminal state every later notification is ignored.

    Notes
    -----
    Unsubscribing does not stop the producer. For streaming procedures the
    underlying call keeps running until the node ends it.
    """

    def __init__(self, observer: Observer[t.Any]) -> None:
        self._observer = observer
        self._state = SequenceState.active
        self._closed = False

    @property
    def state(self) -> SequenceState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed or self._state is not SequenceState.active

    def next(self, value: t.Any) -> None:
        if self.closed:
            return
        try:
            self._observer.on_next(value)
        except Exception as exc:
            self.error(exc)

    def error(self, error: BaseException) -> None:
        if self._state is not SequenceState.active:
            return
        self._state = SequenceState.errored
        if not self._closed:
            self._observer.on_error(error)

    def complete(self) -> None:
        if self._state is not SequenceState.active:
            return
        self._state = SequenceState.completed
        if self._closed:
            return
        try:
            self._observer.on_completed()
        except Exception:
            # terminal, nothing left to notify
            log.exception("Completion handler raised")

    def unsubscribe(self) -> None:
        self._closed = True


class Observable(t.Generic[T]):
    """
    Lazily started push sequence supporting a single subscription.

    Parameters
    ----------
    subscriber : typing.Callable[[Subscription], None]
        Producer started on ``subscribe``. A synchronous raise is turned into
        the error notification of the sequence.

    Example::

        async for notification in client.SubscribeInvoices(request):
            print(notification)
    """

    def __init__(self, subscriber: t.Callable[[Subscription], None]) -> None:
        self._subscriber = subscriber
        self._subscription: Subscription | None = None

    @property
    def state(self) -> SequenceState:
        if self._subscription is None:
            return SequenceState.created
        return self._subscription.state

    def subscribe(
        self,
        observer: Observer[T] | None = None,
        *,
        on_next: t.Callable[[T], None] | None = None,
        on_error: t.Callable[[BaseException], None] | None = None,
        on_completed: t.Callable[[], None] | None = None,
    ) -> Subscription:
        """
        Start the producer and route its notifications to an observer.

        Parameters
        ----------
        observer : Observer | None, optional
            Object with ``on_next``, ``on_error`` and ``on_completed`` methods.
        on_next, on_error, on_completed : typing.Callable | None, optional
            Plain callbacks, used when no ``observer`` is given.

        Returns
        -------
        Subscription
            Handle to stop receiving notifications.

        Raises
        ------
        RuntimeError
            If the sequence was already subscribed.
        """
        if self._subscription is not None:
            raise RuntimeError("Observable supports a single subscription")
        if observer is None:
            observer = _CallbackObserver(
                on_next=on_next, on_error=on_error, on_completed=on_completed
            )
        subscription = Subscription(observer)
        self._subscription = subscription
        try:
            self._subscriber(subscription)
        except Exception as exc:
            subscription.error(exc)
        return subscription

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        notifications: asyncio.Queue[tuple[str, t.Any]] = asyncio.Queue()
        subscription = self.subscribe(
            on_next=lambda value: notifications.put_nowait((_NEXT, value)),
            on_error=lambda error: notifications.put_nowait((_ERROR, error)),
            on_completed=lambda: notifications.put_nowait((_COMPLETED, None)),
        )
        try:
            while True:
                kind, value = await notifications.get()
                if kind == _NEXT:
                    yield value
                elif kind == _ERROR:
                    raise value
                else:
                    return
        finally:
            subscription.unsubscribe()
