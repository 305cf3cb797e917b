"""Artifact preview command"""

import shutil
from pathlib import Path

import click
from rich.console import Console

from clawdeploy.compose.quickstart import TEMPLATES_DIR as COMPOSE_TEMPLATES
from clawdeploy.config import expand
from clawdeploy.installer.artifacts import (
    render_env_file,
    render_gateway_config,
    render_nginx_conf,
    render_systemd_unit,
)
from clawdeploy.installer.token import PLACEHOLDER_TOKEN, is_valid_token, read_token

from .install import validate_domain

console = Console()


@click.command()
@click.argument("artifact", type=click.Choice(["config", "nginx", "unit", "env"]))
@click.option("--token", help="Token to embed (default: the token file, else a placeholder)")
@click.option("--domain", callback=validate_domain, help="Domain for server_name (nginx only)")
@click.option("-o", "--output", type=click.Path(dir_okay=False), help="Write to a file instead of stdout")
@click.pass_context
def render(ctx, artifact, token, domain, output):
    """Render an artifact without changing the system"""
    settings = ctx.obj["config"]

    if token and not is_valid_token(token):
        console.print("[red]Error:[/red] token must be 64 lowercase hex characters")
        raise click.Abort()

    if not token:
        token = read_token(expand(settings["gateway"]["token_file"]))
        if not is_valid_token(token):
            token = None

    if artifact == "config":
        text = render_gateway_config(token, settings)
    elif artifact == "nginx":
        try:
            text = render_nginx_conf(settings, domain=domain or settings["nginx"]["domain"] or None)
        except ValueError as e:
            raise click.ClickException(str(e))
    elif artifact == "unit":
        binary = settings["gateway"]["binary"]
        exec_path = shutil.which(binary) or f"/usr/bin/{binary}"
        text = render_systemd_unit(settings, token or PLACEHOLDER_TOKEN, exec_path)
    else:
        template = (COMPOSE_TEMPLATES / "env.example").read_text()
        text = render_env_file(template, token or PLACEHOLDER_TOKEN)

    if output:
        Path(output).write_text(text)
        console.print(f"[green]✓[/green] Wrote {artifact} to {output}")
    else:
        click.echo(text, nl=False)
