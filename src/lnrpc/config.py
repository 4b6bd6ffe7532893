import os
import sys
import typing as t
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

DEFAULT_SERVER = "localhost:10001"
SUBSCRIPTION_METHODS = frozenset(
    {
        "SubscribeInvoices",
        "SubscribeTransactions",
        "SubscribeChannelGraph",
        "SendPayment",
        "OpenChannel",
        "CloseChannel",
    }
)


def default_tls_path() -> Path:
    """Location of the lnd TLS certificate for the host operating system."""
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "Lnd" / "tls.cert"
    return Path.home() / ".lnd" / "tls.cert"


class LnrpcConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, arbitrary_types_allowed=True)

    server: str = Field(default=DEFAULT_SERVER, description="lnd gRPC address, host:port")
    tls: Path | None = Field(
        default=None,
        description="path to the lnd TLS certificate, defaults to the platform lnd directory",
    )
    cert: bytes | None = Field(
        default=None,
        description="inline certificate material, takes precedence over the tls path",
        repr=False,
    )
    subscription_methods: frozenset[str] = Field(
        default=SUBSCRIPTION_METHODS,
        validation_alias=AliasChoices("subscription_methods", "subscriptionMethods"),
        description="procedure names adapted as push sequences instead of futures",
    )
    transport: t.Any = Field(
        default=None,
        validation_alias=AliasChoices("transport", "_grpc"),
        description="transport handle providing ssl_credentials() and load(), for test stubbing",
        repr=False,
    )
    service: str = Field(default="Lightning", description="service of the proto to instantiate")
    proto_src: Path | None = Field(
        default=None, description="protocol definition source, defaults to the vendored rpc.proto"
    )
    proto_dest: Path | None = Field(
        default=None, description="patched protocol definition, defaults to <project root>/rpc.proto"
    )

    @field_validator("cert", mode="before")
    @classmethod
    def normalize_cert(cls, value: t.Any):
        if isinstance(value, str):
            return value.encode("utf-8")
        return value

    @field_validator("subscription_methods", mode="before")
    @classmethod
    def default_subscription_methods(cls, value: t.Any):
        if value is None:
            return SUBSCRIPTION_METHODS
        if isinstance(value, str):
            return frozenset({value})
        return frozenset(value)

    @property
    def tls_path(self) -> Path:
        return self.tls.expanduser() if self.tls is not None else default_tls_path()

    @classmethod
    def from_env(cls, **overrides: t.Any) -> "LnrpcConfig":
        """
        Build a configuration from ``LNRPC_*`` environment variables.

        A ``.env`` file in the working directory is loaded first. Explicit
        keyword overrides win over the environment; ``None`` overrides are ignored.
        """
        load_dotenv()
        values: dict[str, t.Any] = {}
        for field, variable in (
            ("server", "LNRPC_SERVER"),
            ("tls", "LNRPC_TLS"),
            ("cert", "LNRPC_CERT"),
            ("service", "LNRPC_SERVICE"),
        ):
            if variable in os.environ:
                values[field] = os.environ[variable]
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls.model_validate(values)
