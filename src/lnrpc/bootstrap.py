"""
Builds the TLS credential and the raw generated client from a configuration.
"""

import os
import typing as t
from pathlib import Path

import structlog

from lnrpc.config import LnrpcConfig
from lnrpc.exceptions import InvalidCredentialError, LnrpcError, ProtocolLoadError
from lnrpc.transport import GrpcTransport, Transport
from lnrpc.utils.files import find_project_root, write_patched_proto
from lnrpc.utils.logging import logging_context

log = structlog.get_logger(__name__)

VENDORED_PROTO = Path(__file__).parent / "protos" / "rpc.proto"
PATCHED_PROTO_NAME = "rpc.proto"

# Required for the lnd TLS handshake (SSL_ERROR_SSL: error:14094410), see
# https://grpc.github.io/grpc/core/md_doc_environment_variables.html
CIPHER_SUITES_VARIABLE = "GRPC_SSL_CIPHER_SUITES"
LND_CIPHER_SUITES = "HIGH+ECDSA"


def ensure_cipher_suites() -> bool:
    """
    Set ``GRPC_SSL_CIPHER_SUITES`` for the whole process unless it is already set.

    Returns
    -------
    bool
        Whether the variable was written.
    """
    if os.environ.get(CIPHER_SUITES_VARIABLE):
        return False
    os.environ[CIPHER_SUITES_VARIABLE] = LND_CIPHER_SUITES
    log.debug("Set gRPC cipher suites", variable=CIPHER_SUITES_VARIABLE, value=LND_CIPHER_SUITES)
    return True


def read_certificate(config: LnrpcConfig) -> bytes:
    """
    Resolve certificate bytes: inline ``cert``, then the ``tls`` path, then the OS default path.
    """
    if config.cert:
        log.debug("Using inline certificate")
        return config.cert
    path = config.tls_path
    log.debug("Reading certificate", path=str(path))
    return path.read_bytes()


def patched_proto_path(config: LnrpcConfig) -> Path:
    if config.proto_dest is not None:
        return config.proto_dest
    return find_project_root(__file__) / PATCHED_PROTO_NAME


def create_credentials(config: LnrpcConfig, transport: Transport) -> t.Any:
    try:
        cert = read_certificate(config)
        ensure_cipher_suites()
        return transport.ssl_credentials(cert)
    except LnrpcError:
        raise
    except Exception as exc:
        raise InvalidCredentialError(f"Invalid TLS certificate: {exc}") from exc


def create_client(config: LnrpcConfig, transport: Transport, credentials: t.Any) -> t.Any:
    proto_src = config.proto_src or VENDORED_PROTO
    proto_dest = patched_proto_path(config)
    try:
        write_patched_proto(proto_src, proto_dest)
        services = transport.load(proto_dest)
        if config.service not in services:
            raise ProtocolLoadError(
                f"Service {config.service!r} not found in {proto_dest}, "
                f"available services: {', '.join(sorted(services))}"
            )
        return services[config.service](config.server, credentials)
    except LnrpcError:
        raise
    except Exception as exc:
        raise ProtocolLoadError(f"Could not load {config.service} client: {exc}") from exc


def bootstrap(config: LnrpcConfig) -> tuple[t.Any, t.Any]:
    """
    Build the credential and the raw client described by ``config``.

    Parameters
    ----------
    config : LnrpcConfig
        Client configuration.

    Returns
    -------
    tuple[typing.Any, typing.Any]
        ``(credentials, raw_client)``.

    Raises
    ------
    InvalidCredentialError
        If the certificate cannot be read or is not valid certificate material.
    ProtocolLoadError
        If the protocol definition cannot be prepared or parsed, or the client
        cannot be instantiated.
    """
    transport = config.transport if config.transport is not None else GrpcTransport()
    with logging_context(server=config.server, service=config.service):
        credentials = create_credentials(config, transport)
        raw_client = create_client(config, transport, credentials)
        log.info("Created raw client", client=repr(raw_client))
    return credentials, raw_client
