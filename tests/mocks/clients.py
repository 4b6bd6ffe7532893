"""
Stub raw clients and transports following the callback convention.
"""

import asyncio
import typing as t
from collections import defaultdict
from pathlib import Path


class StubCall:
    """Event-emitting call object; tests fire the events by hand."""

    def __init__(self):
        self.handlers: dict[str, list[t.Callable[..., None]]] = defaultdict(list)

    def on(self, event, handler):
        self.handlers[event].append(handler)
        return self

    def emit(self, event, *args):
        for handler in list(self.handlers[event]):
            handler(*args)


class ScriptedCall(StubCall):
    """Call object replaying scripted events on the running loop once a data listener attaches."""

    def __init__(self, events: list[tuple[str, t.Any]]):
        super().__init__()
        self.events = events
        self.started = False

    def on(self, event, handler):
        super().on(event, handler)
        if event == "data" and not self.started:
            self.started = True
            loop = asyncio.get_running_loop()
            for name, payload in self.events:
                if name == "end":
                    loop.call_soon(self.emit, name)
                else:
                    loop.call_soon(self.emit, name, payload)
        return self


class StubLightning:
    """Raw Lightning client stub."""

    def __init__(self, server=None, credentials=None):
        self.server = server
        self.credentials = credentials
        self.alias = "node1"
        self.calls: list[tuple[str, tuple]] = []
        self.invoice_events: list[tuple[str, t.Any]] = [("data", {"value": 42}), ("end", None)]
        self.invoice_call: StubCall | None = None

    def GetInfo(self, *args):
        self.calls.append(("GetInfo", args))
        callback = args[-1]
        callback(None, {"alias": self.alias})

    def AddInvoice(self, request, callback, **kwargs):
        self.calls.append(("AddInvoice", (request, callback)))
        callback(None, {"r_hash": b"hash", "metadata": kwargs.get("metadata")})

    def LookupInvoice(self, request, callback):
        self.calls.append(("LookupInvoice", (request, callback)))
        callback(LookupError("invoice not found"), None)

    def DecodePayReq(self, request, callback):
        raise ValueError("invalid payment request")

    def SubscribeInvoices(self, *args):
        self.calls.append(("SubscribeInvoices", args))
        self.invoice_call = ScriptedCall(self.invoice_events)
        return self.invoice_call

    def SubscribeTransactions(self, *args):
        self.calls.append(("SubscribeTransactions", args))
        self.invoice_call = StubCall()
        return self.invoice_call

    def OpenChannel(self, request):
        raise ConnectionError("channel refused")


class StubWalletUnlocker:
    """Raw WalletUnlocker client stub."""

    def __init__(self, server=None, credentials=None):
        self.server = server
        self.credentials = credentials

    def GenSeed(self, request, callback):
        callback(None, {"cipher_seed_mnemonic": ["abandon"] * 24})


class StubTransport:
    """Transport stub recording certificates and loaded protocol definitions."""

    def __init__(self, credentials=None, services=None):
        self.credentials = credentials if credentials is not None else object()
        self.services = (
            services
            if services is not None
            else {"Lightning": StubLightning, "WalletUnlocker": StubWalletUnlocker}
        )
        self.certificates: list[bytes] = []
        self.loaded: list[Path] = []

    def ssl_credentials(self, cert):
        self.certificates.append(cert)
        return self.credentials

    def load(self, proto_path):
        self.loaded.append(Path(proto_path))
        return self.services
