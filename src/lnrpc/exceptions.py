"""
lnrpc-specific runtime exceptions.
"""

from __future__ import annotations

import typing as t


class LnrpcError(Exception):
    """
    Base class for errors raised by lnrpc.

    Notes
    -----
    Every subclass carries a fixed ``code`` so callers can tell credential
    failures apart from other startup failures without matching messages.
    """

    code: t.ClassVar[str] = "LNRPC_ERR"


class InvalidCredentialError(LnrpcError):
    """
    The TLS certificate could not be read or is not valid certificate material.
    """

    code = "INVALID_SSL_CERT"


class ProtocolLoadError(LnrpcError):
    """
    The protocol definition could not be prepared or parsed, or the generated
    client could not be instantiated.
    """

    code = "GRPC_LOAD_ERR"


class RemoteCallError(LnrpcError):
    """
    A unary call reported an error value that is not an exception.

    Parameters
    ----------
    error : typing.Any
        Error value handed to the completion callback.
    """

    code = "RPC_CALL_ERR"

    def __init__(self, error: t.Any) -> None:
        super().__init__(error)
        self.error = error
