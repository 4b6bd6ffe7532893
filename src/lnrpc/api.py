"""
Main endpoint for users.
Exposes a `create_lnrpc` factory that bootstraps a raw lnd client and wraps it
in a LightningProxy adapting every procedure to asyncio.
"""

import typing as t

from lnrpc.bootstrap import bootstrap
from lnrpc.config import LnrpcConfig
from lnrpc.proxy import LightningProxy


def create_lnrpc(config: LnrpcConfig | None = None, **options: t.Any) -> LightningProxy:
    """
    Create an adapted lnd client.

    Parameters
    ----------
    config : LnrpcConfig | None, optional
        Complete configuration. Mutually exclusive with ``options``.
    **options : typing.Any
        Configuration fields, validated into a ``LnrpcConfig``. The aliases
        ``subscriptionMethods`` and ``_grpc`` are accepted.

    Returns
    -------
    LightningProxy
        Wrapped client. Unary procedures return ``asyncio.Future`` objects,
        procedures listed in ``subscription_methods`` return ``Observable`` objects.

    Raises
    ------
    InvalidCredentialError
        If the TLS certificate cannot be read or is malformed.
    ProtocolLoadError
        If the protocol definition or the client cannot be loaded.

    Notes
    -----
    >>> client = create_lnrpc(server="localhost:10009", tls="~/.lnd/tls.cert")
    >>> info = await client.GetInfo(client.protos.GetInfoRequest())
    """
    if config is not None and options:
        raise TypeError("Pass either a LnrpcConfig or keyword options, not both")
    if config is None:
        config = LnrpcConfig.model_validate(options)
    _, raw_client = bootstrap(config)
    return LightningProxy(raw_client, config.subscription_methods)
