#!/usr/bin/env python3
"""clawdeploy CLI - Main entry point"""

from pathlib import Path

import click
from rich.console import Console

from clawdeploy.config.manager import DEFAULT_CONFIG_PATH, ConfigManager
from clawdeploy.errors import DeployError
from clawdeploy.logging_conf import setup_logging

console = Console()


@click.group()
@click.option("--config", envvar="CLAWDEPLOY_CONFIG", type=click.Path(), help="Config file path")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx, config, verbose):
    """clawdeploy - deploy the Moltbot/OpenClaw gateway on a VM"""
    ctx.ensure_object(dict)

    config_path = Path(config) if config else DEFAULT_CONFIG_PATH
    try:
        cfg = ConfigManager(config_path).load()
    except DeployError as e:
        raise click.ClickException(str(e))

    setup_logging("DEBUG" if verbose else cfg["logging"]["level"])

    ctx.obj["config"] = cfg


@cli.command()
def version():
    """Show version information"""
    from clawdeploy import __version__

    console.print(f"clawdeploy version {__version__}")


from clawdeploy.cli import docker, install, render, verify

cli.add_command(install.install)
cli.add_command(docker.docker)
cli.add_command(verify.verify)
cli.add_command(render.render)


if __name__ == "__main__":
    cli()
