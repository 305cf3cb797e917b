"""Host installation command"""

import click
from rich.console import Console

from clawdeploy.installer.artifacts import is_valid_domain
from clawdeploy.installer.bootstrap import full_install

console = Console()


def validate_domain(ctx, param, value):
    if value and not is_valid_domain(value):
        raise click.BadParameter(f"{value!r} is not a host name such as chat.example.com")
    return value


@click.command()
@click.option("-y", "--yes", "assume_yes", is_flag=True, help="Accept the default answer to every prompt")
@click.option("--rotate-token", is_flag=True, help="Replace an existing gateway token")
@click.option(
    "--domain",
    callback=validate_domain,
    help="Domain for server_name and the SSL certificate (overrides MOLTBOT_DOMAIN)",
)
@click.option("--email", help="Contact email for certificate issuance (overrides SSL_EMAIL)")
@click.option("--docker/--no-docker", default=None, help="Install Docker for sandboxing")
@click.option("--ssl/--no-ssl", default=None, help="Request a certificate for the domain")
@click.option("--onboard/--no-onboard", default=None, help="Run the onboarding wizard")
@click.pass_context
def install(ctx, assume_yes, rotate_token, domain, email, docker, ssl, onboard):
    """Install the Moltbot gateway behind Nginx on this host"""
    settings = ctx.obj["config"]

    if domain:
        settings["nginx"]["domain"] = domain
    if email:
        settings["ssl"]["email"] = email

    ok = full_install(
        settings,
        assume_yes=assume_yes,
        rotate_token=rotate_token,
        docker=docker,
        ssl=ssl,
        onboard=onboard,
    )
    if not ok:
        ctx.exit(1)
