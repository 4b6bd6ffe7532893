import json

import typer


def request_callback(ctx: typer.Context, value: str):
    if ctx.resilient_parsing:
        return
    try:
        payload = json.loads(value)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(message=f"request is not valid JSON: {exc.msg}")
    if not isinstance(payload, dict):
        raise typer.BadParameter(message="request must be a JSON object")
    return value


def limit_callback(ctx: typer.Context, value: int | None):
    if ctx.resilient_parsing:
        return
    if value is not None and value < 1:
        raise typer.BadParameter(message="limit must be a positive number of notifications")
    return value
