"""Click commands for running Hubbub and checking its configuration."""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

import click

from hubbub import __version__

DEFAULT_CONFIG_PATH = "./config.json"

_SECRET_FIELDS = {"slack_webhook", "instrumentation_key"}


def _resolve_config_path(config_path: str | None, env_only: bool) -> str | None:
    """The explicit path, else the default path when it exists."""
    if env_only:
        return None
    if config_path is not None:
        return config_path
    if Path(DEFAULT_CONFIG_PATH).is_file():
        return DEFAULT_CONFIG_PATH
    return None


def _mask(value: str) -> str:
    if len(value) <= 8:
        return "****" if value else ""
    return f"{value[:4]}****{value[-4:]}"


def _config_option(f: Any) -> Any:
    f = click.option(
        "-c",
        "--config",
        "config_path",
        type=click.Path(dir_okay=False),
        default=None,
        help=f"Path to the JSON config file (default: {DEFAULT_CONFIG_PATH} if present).",
    )(f)
    f = click.option(
        "-e",
        "--env-only",
        is_flag=True,
        default=False,
        help="Use only HUBBUB_* environment variables.",
    )(f)
    return f


@click.group()
@click.version_option(__version__, prog_name="hubbub")
def cli() -> None:
    """Hubbub: alert on failed pods in a Kubernetes namespace."""


@cli.command()
@_config_option
def run(config_path: str | None, env_only: bool) -> None:
    """Watch the configured namespace until interrupted."""
    from hubbub.app import main

    asyncio.run(main(_resolve_config_path(config_path, env_only), env_only=env_only))


@cli.command("check-config")
@_config_option
def check_config(config_path: str | None, env_only: bool) -> None:
    """Validate the configuration and print the effective values."""
    from hubbub.config import load_config
    from hubbub.notifications import build_notification_handler
    from hubbub.observability.logging import setup_logging

    # Only warnings (e.g. an unknown time zone) are of interest here, on stderr.
    setup_logging("warning")
    try:
        config = load_config(_resolve_config_path(config_path, env_only), env_only=env_only)
        handler = build_notification_handler(config.notifications)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    effective = asdict(config)
    effective["tz"] = str(config.tz)
    for key in _SECRET_FIELDS:
        effective["notifications"][key] = _mask(effective["notifications"][key])
    effective["notifications"]["handler"] = handler.channel_name
    click.echo(json.dumps(effective, indent=2))
