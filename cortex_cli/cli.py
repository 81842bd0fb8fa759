"""Cortex CLI entry point.

This module is the only place that terminates the process: lower layers
raise CortexError and the commands here print the message and exit.
"""

import asyncio
import json
import os
import sys
from collections.abc import Awaitable, Callable
from typing import NoReturn, TypeVar

import click

from cortex_cli.clients.factory import close_operator_client, get_operator_client
from cortex_cli.clients.models import ClientConfig
from cortex_cli.logging.audit import setup_logging
from cortex_cli.operator.archive import ZipDirInput, ZipInput
from cortex_cli.operator.errors import CortexError
from cortex_cli.operator.logs import SessionOutcome, stream_logs

T = TypeVar("T")

CONFIG_ZIP_NAME = "config.zip"
_IGNORED_SUFFIXES = (".pyc", ".pyo", ".zip")


def exit_with_error(err: CortexError | str) -> NoReturn:
    """Print a single plain-text error message to stderr and exit with status 1."""
    message = err.message if isinstance(err, CortexError) else err
    click.echo(click.style(f"error: {message}", fg="red"), err=True)
    sys.exit(1)


def _run(make_coro: Callable[[], Awaitable[T]]) -> T:
    """Run a command coroutine, converting CortexError into a process exit."""

    async def _wrapper() -> T:
        try:
            return await make_coro()
        finally:
            await close_operator_client()

    try:
        return asyncio.run(_wrapper())
    except CortexError as e:
        exit_with_error(e)


def _response_message(body: bytes) -> str:
    try:
        payload = json.loads(body)
    except ValueError:
        return body.decode(errors="replace")
    if isinstance(payload, dict) and "message" in payload:
        return str(payload["message"])
    return body.decode(errors="replace")


def _parse_params(params: tuple[str, ...]) -> dict[str, str]:
    parsed = {}
    for param in params:
        key, sep, value = param.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {param!r}", param_hint="--param")
        parsed[key] = value
    return parsed


def _ignore_build_artifacts(rel_path: str) -> bool:
    return rel_path.endswith(_IGNORED_SUFFIXES) or "__pycache__" in rel_path.split(os.sep)


@click.group()
def main() -> None:
    """Command line client for the Cortex operator."""
    setup_logging()


@main.command()
@click.argument("endpoint")
@click.option("--param", "-p", "params", multiple=True, help="Query parameter as key=value (repeatable).")
def get(endpoint: str, params: tuple[str, ...]) -> None:
    """Send a GET request to an operator endpoint and print the response body."""
    q_params = _parse_params(params)
    body = _run(lambda: get_operator_client().get(endpoint, q_params))
    click.echo(body.decode(errors="replace"))


@main.command()
@click.option(
    "--config-dir",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    show_default=True,
    help="Directory holding cortex.yaml and its resources.",
)
@click.option("--app", "app_name", help="App name. Defaults to the config directory's name.")
@click.option("--force", is_flag=True, help="Override a deployment that is in progress.")
def deploy(config_dir: str, app_name: str | None, force: bool) -> None:
    """Zip the configuration directory and push it to the operator."""
    config_dir = os.path.abspath(config_dir)
    if not os.path.isfile(os.path.join(config_dir, "cortex.yaml")):
        exit_with_error(f"cortex.yaml not found in {config_dir}")
    if not app_name:
        app_name = os.path.basename(config_dir)

    zip_input = ZipInput(dirs=[ZipDirInput(source=config_dir, ignore_fns=[_ignore_build_artifacts])])
    q_params = {"appName": app_name, "force": "true" if force else "false"}
    body = _run(lambda: get_operator_client().upload_zip("/deploy", zip_input, CONFIG_ZIP_NAME, q_params))
    click.echo(_response_message(body))


@main.command()
@click.argument("app_name")
@click.option("--keep-cache", is_flag=True, help="Keep cached data for the app.")
def delete(app_name: str, keep_cache: bool) -> None:
    """Delete a deployed app."""
    body = _run(
        lambda: get_operator_client().post_json_data(
            "/delete", None, {"appName": app_name, "keepCache": "true" if keep_cache else "false"}
        )
    )
    click.echo(_response_message(body))


@main.command()
@click.argument("app_name")
@click.argument("resource_name")
@click.option("--resource-type", "-t", default="api", show_default=True, help="Type of the resource.")
@click.option("--verbose", "-v", is_flag=True, help="Show all log lines, not just the resource's own.")
def logs(app_name: str, resource_name: str, resource_type: str, verbose: bool) -> None:
    """Stream logs for a resource until it completes or Ctrl+C is pressed."""
    outcome = _run(
        lambda: stream_logs(ClientConfig.from_settings(), app_name, resource_name, resource_type, verbose)
    )
    if outcome is SessionOutcome.READ_ERROR:
        exit_with_error("log stream ended unexpectedly")


if __name__ == "__main__":
    main()
