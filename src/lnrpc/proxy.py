"""
Client wrapper returned by ``create_lnrpc``.
We use wrapt so the proxy still passes isinstance checks against the raw client
and forwards magic methods, and override __getattr__ to adapt every procedure
at access time, since the procedure list comes from the protocol definition.
"""

import asyncio
import functools
import typing as t
from collections.abc import Iterable

import structlog

from lnrpc.exceptions import RemoteCallError
from lnrpc.observable import Observable, Subscription

T = t.TypeVar("T")

log = structlog.get_logger(__name__)


def _as_exception(error: t.Any) -> BaseException:
    if isinstance(error, BaseException):
        return error
    return RemoteCallError(error)


def deferred_procedure(name: str, method: t.Callable[..., t.Any]) -> t.Callable[..., asyncio.Future]:
    """
    Adapt a procedure taking a trailing ``callback(error, value)`` to one returning a future.

    Parameters
    ----------
    name : str
        Procedure name, for logging.
    method : typing.Callable[..., typing.Any]
        Raw procedure.

    Returns
    -------
    typing.Callable[..., asyncio.Future]
        Function forwarding its arguments plus the completion callback. The
        future resolves with the callback value, or rejects with the callback
        error when it is truthy. It settles exactly once.
    """

    @functools.wraps(method)
    def call(*args: t.Any, **kwargs: t.Any) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        reported = False

        def settle(error: t.Any, value: t.Any) -> None:
            if future.done():
                return
            if error:
                future.set_exception(_as_exception(error))
            else:
                future.set_result(value)

        def callback(error: t.Any, value: t.Any = None) -> None:
            nonlocal reported
            reported = True
            # may run on a transport thread
            loop.call_soon_threadsafe(settle, error, value)

        log.debug("Calling unary procedure", method=name)
        try:
            method(*args, callback, **kwargs)
        except Exception as exc:
            # a value already handed to the callback wins over a later raise
            if not reported:
                settle(exc, None)
            else:
                log.warning("Unary procedure raised after reporting", method=name, error=repr(exc))
        return future

    return call


def observable_procedure(name: str, method: t.Callable[..., t.Any]) -> t.Callable[..., Observable]:
    """
    Adapt a procedure returning an event-emitting call to one returning a cold ``Observable``.

    The raw procedure runs when the sequence is subscribed, not when the
    returned function is called. ``status`` and ``data`` events become
    ``{"status": ...}`` and ``{"data": ...}`` notifications, ``end`` completes
    and ``error`` fails the sequence.
    """

    @functools.wraps(method)
    def observe(*args: t.Any, **kwargs: t.Any) -> Observable:
        def start(subscription: Subscription) -> None:
            log.debug("Starting streaming procedure", method=name)
            call = method(*args, **kwargs)
            if getattr(call, "writable", False):
                # requests written to the call are unreachable behind the Observable
                call.half_close()
                call.cancel()
                raise TypeError(f"{name}() streams requests, pass a request iterator")
            call.on("error", lambda error: subscription.error(_as_exception(error)))
            call.on("status", lambda status: subscription.next({"status": status}))
            call.on("end", lambda *_: subscription.complete())
            # the first data listener starts the read
            call.on("data", lambda data: subscription.next({"data": data}))

        return Observable(start)

    return observe


if t.TYPE_CHECKING:

    class LightningProxy(t.Generic[T]):
        """
        Proxy that adapts the procedures of a raw client on attribute access.

        During static analysis the constructor is typed as returning ``T`` so
        that IDEs keep the attribute names of the wrapped client.
        """

        _self_subscription_methods: frozenset[str]
        __wrapped__: T

        def __new__(cls, wrapped: T, subscription_methods: Iterable[str]) -> T: ...  # type: ignore[misc]
        def __init__(self, wrapped: T, subscription_methods: Iterable[str]) -> None: ...
        def __class_getitem__(cls, item: type) -> type: ...

else:
    import wrapt

    class LightningProxy(wrapt.ObjectProxy):
        """
        Proxy that adapts the procedures of a raw client on attribute access.

        - non-callable attributes (and dunders) are returned unchanged
        - procedures named in ``subscription_methods`` return an ``Observable``
        - every other procedure returns an ``asyncio.Future``

        Missing attributes raise ``AttributeError`` like on the raw client.

        Example:
            >>> client = LightningProxy(raw_client, {"SubscribeInvoices"})
            >>> info = await client.GetInfo(request)
            >>> async for notification in client.SubscribeInvoices(subscription):
            ...     print(notification)
        """

        def __init__(self, wrapped, subscription_methods):
            super().__init__(wrapped)
            self._self_subscription_methods = frozenset(subscription_methods)

        def __class_getitem__(cls, item):
            """Make LightningProxy subscriptable for type hints: LightningProxy[CallbackStub]"""
            return cls

        def __getattr__(self, name):
            original_attr = getattr(self.__wrapped__, name)

            if name.startswith("__") or not callable(original_attr):
                return original_attr

            if name in self._self_subscription_methods:
                return observable_procedure(name, original_attr)
            return deferred_procedure(name, original_attr)
