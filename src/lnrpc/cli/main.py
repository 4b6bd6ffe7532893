import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Any

import grpc
import typer
from google.protobuf import json_format
from google.protobuf.message import Message
from rich import print
from rich.console import Console
from rich.table import Table

from lnrpc.api import create_lnrpc
from lnrpc.cli.callbacks import limit_callback, request_callback
from lnrpc.config import LnrpcConfig
from lnrpc.exceptions import LnrpcError
from lnrpc.proxy import LightningProxy
from lnrpc.transport import CallStatus
from lnrpc.utils.logging import setup_logging

app = typer.Typer(no_args_is_help=True)

ServerOption = Annotated[
    str | None,
    typer.Option("-s", "--server", help="lnd gRPC address, host:port", rich_help_panel="Connection"),
]
TlsOption = Annotated[
    Path | None,
    typer.Option("--tls", help="Path to the lnd TLS certificate", rich_help_panel="Connection"),
]
CertOption = Annotated[
    str | None,
    typer.Option("--cert", help="Inline PEM certificate, overrides --tls", rich_help_panel="Connection"),
]
ServiceOption = Annotated[
    str | None,
    typer.Option("--service", help="Service of the protocol definition", rich_help_panel="Connection"),
]
VerboseOption = Annotated[bool, typer.Option("-v", "--verbose", help="Enable debug logging")]
RequestOption = Annotated[
    str,
    typer.Option(
        "-r",
        "--request",
        help="Request message as a JSON object",
        callback=request_callback,
    ),
]


def connect(
    server: str | None,
    tls: Path | None,
    cert: str | None,
    service: str | None,
    verbose: bool,
) -> tuple[LnrpcConfig, LightningProxy]:
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING)
    config = LnrpcConfig.from_env(server=server, tls=tls, cert=cert, service=service)
    try:
        client = create_lnrpc(config)
    except LnrpcError as exc:
        print(f"[red]{exc.code}[/red]: {exc}")
        raise typer.Exit(1)
    return config, client


def build_request(client: LightningProxy, method: str, payload: dict) -> Message:
    descriptor = client.descriptor.methods_by_name.get(method)
    if descriptor is None:
        raise typer.BadParameter(
            message=f"'{method}' is not a procedure of {client.descriptor.name}",
            param_hint="METHOD",
        )
    request_cls = getattr(client.protos, descriptor.input_type.name)
    try:
        return json_format.ParseDict(payload, request_cls())
    except json_format.ParseError as exc:
        raise typer.BadParameter(message=str(exc), param_hint="--request")


def to_jsonable(notification: Any) -> Any:
    if isinstance(notification, Message):
        return json_format.MessageToDict(notification)
    if isinstance(notification, CallStatus):
        return {
            "code": notification.code.name if notification.code is not None else None,
            "details": notification.details,
        }
    if isinstance(notification, dict):
        return {key: to_jsonable(value) for key, value in notification.items()}
    return notification


def fail(error: Exception) -> typer.Exit:
    if isinstance(error, grpc.RpcError) and hasattr(error, "code"):
        print(f"[red]{error.code().name}[/red]: {error.details()}")
    else:
        print(f"[red]error[/red]: {error}")
    return typer.Exit(1)


@app.command(name="methods")
def list_methods(
    server: ServerOption = None,
    tls: TlsOption = None,
    cert: CertOption = None,
    service: ServiceOption = None,
    verbose: VerboseOption = False,
):
    """List the procedures of the service"""
    config, client = connect(server, tls, cert, service, verbose)
    table = Table("Method", "Request", "Response", "Adapted as", title=client.descriptor.full_name)
    for method in client.descriptor.methods:
        table.add_row(
            method.name,
            method.input_type.name,
            method.output_type.name,
            "observable" if method.name in config.subscription_methods else "future",
        )
    Console().print(table)


@app.command(name="call")
def call_method(
    method: Annotated[str, typer.Argument(help="Unary procedure to call, e.g. GetInfo")],
    request: RequestOption = "{}",
    server: ServerOption = None,
    tls: TlsOption = None,
    cert: CertOption = None,
    service: ServiceOption = None,
    verbose: VerboseOption = False,
):
    """Call a unary procedure and print the response"""
    config, client = connect(server, tls, cert, service, verbose)
    if method in config.subscription_methods:
        raise typer.BadParameter(
            message=f"'{method}' is a streaming procedure, use `subscribe`", param_hint="METHOD"
        )
    message = build_request(client, method, json.loads(request))

    async def run() -> Any:
        return await getattr(client, method)(message)

    try:
        response = asyncio.run(run())
    except (grpc.RpcError, LnrpcError) as exc:
        raise fail(exc)
    Console().print_json(data=to_jsonable(response))


@app.command(name="subscribe")
def subscribe_method(
    method: Annotated[str, typer.Argument(help="Streaming procedure, e.g. SubscribeInvoices")],
    request: RequestOption = "{}",
    limit: Annotated[
        int | None,
        typer.Option("-n", "--limit", help="Stop after this many notifications", callback=limit_callback),
    ] = None,
    server: ServerOption = None,
    tls: TlsOption = None,
    cert: CertOption = None,
    service: ServiceOption = None,
    verbose: VerboseOption = False,
):
    """Subscribe to a streaming procedure and print one JSON line per notification"""
    config, client = connect(server, tls, cert, service, verbose)
    if method not in config.subscription_methods:
        raise typer.BadParameter(
            message=f"'{method}' is not a streaming procedure, use `call`", param_hint="METHOD"
        )
    message = build_request(client, method, json.loads(request))

    async def run() -> None:
        received = 0
        async for notification in getattr(client, method)(message):
            typer.echo(json.dumps(to_jsonable(notification)))
            received += 1
            if limit is not None and received >= limit:
                break

    try:
        asyncio.run(run())
    except (grpc.RpcError, LnrpcError) as exc:
        raise fail(exc)
