from .api import create_lnrpc as create_lnrpc
from .config import SUBSCRIPTION_METHODS as SUBSCRIPTION_METHODS
from .config import LnrpcConfig as LnrpcConfig
from .exceptions import InvalidCredentialError as InvalidCredentialError
from .exceptions import LnrpcError as LnrpcError
from .exceptions import ProtocolLoadError as ProtocolLoadError
from .exceptions import RemoteCallError as RemoteCallError
from .observable import Observable as Observable
from .proxy import LightningProxy as LightningProxy

__all__ = [
    "create_lnrpc",
    "LnrpcConfig",
    "SUBSCRIPTION_METHODS",
    "LightningProxy",
    "Observable",
    "LnrpcError",
    "InvalidCredentialError",
    "ProtocolLoadError",
    "RemoteCallError",
]
