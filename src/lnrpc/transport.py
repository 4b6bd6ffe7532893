"""
Default transport handle, built on grpcio.
Exposes generated gRPC stubs in the callback convention the interception layer
adapts: unary procedures take a trailing ``callback(error, value)``, streaming
procedures synchronously return a ``CallEmitter`` publishing ``status``,
``data``, ``end`` and ``error`` events.
"""

import asyncio
import functools
import queue
import sys
import threading
import typing as t
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import grpc
import structlog
from cryptography import x509

log = structlog.get_logger(__name__)

Callback = t.Callable[[t.Any, t.Any], None]
ClientFactory = t.Callable[[str, t.Any], t.Any]

_END_OF_REQUESTS = object()


class Transport(t.Protocol):
    """
    Capabilities the bootstrapper needs from a transport implementation.
    """

    def ssl_credentials(self, cert: bytes) -> t.Any: ...

    def load(self, proto_path: Path) -> t.Mapping[str, ClientFactory]: ...


@dataclass(frozen=True)
class CallStatus:
    """Final status of a streaming call, delivered with the ``status`` event."""

    code: grpc.StatusCode | None
    details: str | None = None
    metadata: t.Any = None

    @classmethod
    def from_call(cls, call: t.Any) -> "CallStatus":
        """
        Read the status of a finished call or of the ``grpc.RpcError`` it raised.

        Parameters
        ----------
        call : typing.Any
            Call object, usually a ``grpc.Call``.

        Returns
        -------
        CallStatus
            Status with the accessors the call does not provide left as ``None``.
        """

        def read(accessor: str) -> t.Any:
            method = getattr(call, accessor, None)
            return method() if callable(method) else None

        return cls(
            code=read("code"),
            details=read("details"),
            metadata=read("trailing_metadata"),
        )


class CallEmitter:
    """
    Event-emitting view of a response-streaming gRPC call.

    Responses are read on a daemon thread. When the call was started from a
    running event loop, every event is handed back to that loop with
    ``call_soon_threadsafe`` so handlers always run on the loop, in the order
    the responses arrived. Attaching the first ``data`` listener starts the read.

    Parameters
    ----------
    call : typing.Any
        Iterable call object returned by a streaming multi-callable.
    loop : asyncio.AbstractEventLoop | None, optional
        Loop receiving the events. Without a loop, handlers run on the reader thread.
    requests : queue.Queue | None, optional
        Request queue feeding a client-streaming call, written by ``write``.
    """

    EVENTS = ("status", "data", "end", "error")

    def __init__(
        self,
        call: t.Any,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        requests: queue.Queue | None = None,
    ) -> None:
        self._call = call
        self._loop = loop
        self._requests = requests
        self._handlers: dict[str, list[t.Callable[..., None]]] = {event: [] for event in self.EVENTS}
        self._reader: threading.Thread | None = None

    def on(self, event: str, handler: t.Callable[..., None]) -> "CallEmitter":
        if event not in self._handlers:
            raise ValueError(f"Unknown call event: {event!r}")
        self._handlers[event].append(handler)
        if event == "data" and self._reader is None:
            self._reader = threading.Thread(target=self._read, name="lnrpc-call-reader", daemon=True)
            self._reader.start()
        return self

    @property
    def writable(self) -> bool:
        """Whether requests are fed through ``write`` and ``half_close``."""
        return self._requests is not None

    def write(self, request: t.Any) -> None:
        """Send one request on a client-streaming call."""
        if self._requests is None:
            raise RuntimeError("This call does not accept streamed requests")
        self._requests.put(request)

    def half_close(self) -> None:
        """Signal that no further requests will be written."""
        if self._requests is None:
            raise RuntimeError("This call does not accept streamed requests")
        self._requests.put(_END_OF_REQUESTS)

    def cancel(self) -> bool:
        return self._call.cancel()

    def _read(self) -> None:
        try:
            for response in self._call:
                self._emit("data", response)
        except grpc.RpcError as exc:
            self._emit("status", CallStatus.from_call(exc))
            self._emit("error", exc)
            return
        self._emit("status", CallStatus.from_call(self._call))
        self._emit("end")

    def _emit(self, event: str, *args: t.Any) -> None:
        if self._loop is None:
            self._dispatch(event, *args)
            return
        try:
            self._loop.call_soon_threadsafe(self._dispatch, event, *args)
        except RuntimeError:
            log.warning("Event loop closed, dropping call event", call_event=event)

    def _dispatch(self, event: str, *args: t.Any) -> None:
        for handler in list(self._handlers[event]):
            handler(*args)


def _iter_requests(requests: queue.Queue) -> Iterator[t.Any]:
    while True:
        request = requests.get()
        if request is _END_OF_REQUESTS:
            return
        yield request


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def _unary_procedure(name: str, multicallable: t.Any) -> t.Callable[..., t.Any]:
    def invoke(*args: t.Any, **kwargs: t.Any) -> t.Any:
        if not args or not callable(args[-1]):
            raise TypeError(f"{name}() expects a trailing callback(error, value) argument")
        *call_args, callback = args
        future = multicallable.future(*call_args, **kwargs)

        def on_done(completed: t.Any) -> None:
            try:
                response = completed.result()
            except (grpc.RpcError, grpc.FutureCancelledError) as exc:
                callback(exc, None)
                return
            callback(None, response)

        future.add_done_callback(on_done)
        return future

    invoke.__name__ = invoke.__qualname__ = name
    return invoke


def _streaming_procedure(
    name: str, multicallable: t.Any, *, client_streaming: bool
) -> t.Callable[..., CallEmitter]:
    def invoke(*args: t.Any, **kwargs: t.Any) -> CallEmitter:
        loop = _running_loop()
        requests: queue.Queue | None = None
        if client_streaming and not args:
            requests = queue.Queue()
            args = (_iter_requests(requests),)
        call = multicallable(*args, **kwargs)
        return CallEmitter(call, loop=loop, requests=requests)

    invoke.__name__ = invoke.__qualname__ = name
    return invoke


class CallbackStub:
    """
    Generated gRPC stub exposed in callback convention.

    Non-callable attributes (``channel``, ``protos``, ``descriptor``) describe
    the connection and the loaded protocol.

    Parameters
    ----------
    stub : typing.Any
        Generated stub instance, e.g. ``LightningStub(channel)``.
    channel : grpc.Channel | None, optional
        Channel the stub is bound to.
    protos : types.ModuleType | None, optional
        Generated message module of the protocol definition.
    descriptor : typing.Any, optional
        Service descriptor of the stub.
    """

    def __init__(
        self,
        stub: t.Any,
        *,
        channel: grpc.Channel | None = None,
        protos: t.Any = None,
        descriptor: t.Any = None,
    ) -> None:
        self._stub = stub
        self.channel = channel
        self.protos = protos
        self.descriptor = descriptor

    def __getattr__(self, name: str) -> t.Any:
        stub = self.__dict__.get("_stub")
        if stub is None:
            raise AttributeError(name)
        multicallable = getattr(stub, name)
        if isinstance(multicallable, (grpc.UnaryUnaryMultiCallable, grpc.StreamUnaryMultiCallable)):
            return _unary_procedure(name, multicallable)
        if isinstance(multicallable, grpc.UnaryStreamMultiCallable):
            return _streaming_procedure(name, multicallable, client_streaming=False)
        if isinstance(multicallable, grpc.StreamStreamMultiCallable):
            return _streaming_procedure(name, multicallable, client_streaming=True)
        return multicallable

    def __repr__(self) -> str:
        service = getattr(self.descriptor, "full_name", type(self._stub).__name__)
        return f"<CallbackStub {service}>"


@contextmanager
def _importable(directory: Path) -> Iterator[None]:
    # grpc.protos_and_services resolves proto files against sys.path entries
    entry = str(directory)
    sys.path.insert(0, entry)
    try:
        yield
    finally:
        sys.path.remove(entry)


def _connect(
    stub_cls: type, protos: t.Any, descriptor: t.Any, server: str, credentials: grpc.ChannelCredentials
) -> CallbackStub:
    channel = grpc.secure_channel(server, credentials)
    log.debug("Opened secure channel", server=server, service=descriptor.full_name)
    return CallbackStub(stub_cls(channel), channel=channel, protos=protos, descriptor=descriptor)


class GrpcTransport:
    """
    Transport handle backed by grpcio and grpcio-tools.
    """

    def ssl_credentials(self, cert: bytes) -> grpc.ChannelCredentials:
        """
        Build channel credentials trusting ``cert``.

        Parameters
        ----------
        cert : bytes
            PEM encoded certificate.

        Returns
        -------
        grpc.ChannelCredentials
            Credentials for ``grpc.secure_channel``.

        Raises
        ------
        ValueError
            If ``cert`` is not a PEM encoded X.509 certificate.
        """
        x509.load_pem_x509_certificate(cert)
        return grpc.ssl_channel_credentials(root_certificates=cert)

    def load(self, proto_path: Path) -> dict[str, ClientFactory]:
        """
        Compile a protocol definition and return one client factory per service.

        Parameters
        ----------
        proto_path : pathlib.Path
            Location of the ``.proto`` file.

        Returns
        -------
        dict[str, ClientFactory]
            Service name mapped to ``factory(server, credentials) -> CallbackStub``.
        """
        proto_path = Path(proto_path).resolve()
        with _importable(proto_path.parent):
            protos, services = grpc.protos_and_services(proto_path.name)
        factories: dict[str, ClientFactory] = {}
        for name, descriptor in protos.DESCRIPTOR.services_by_name.items():
            stub_cls = getattr(services, f"{name}Stub")
            factories[name] = functools.partial(_connect, stub_cls, protos, descriptor)
        log.debug("Loaded protocol definition", path=str(proto_path), services=sorted(factories))
        return factories
