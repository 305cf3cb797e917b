"""Docker Compose quick-start command"""

from pathlib import Path

import click

from clawdeploy.compose.quickstart import dispatch


@click.command(context_settings={"ignore_unknown_options": True})
@click.argument("action", default="start")
@click.option(
    "--project-dir",
    type=click.Path(file_okay=False),
    help="Compose project directory (default: docker.project_dir from config)",
)
@click.pass_context
def docker(ctx, action, project_dir):
    """Run the OpenClaw compose stack.

    ACTION is one of start, stop, restart, logs, status, cli, build,
    onboard or dashboard.
    """
    settings = ctx.obj["config"]
    directory = Path(project_dir or settings["docker"]["project_dir"]).expanduser()

    ctx.exit(dispatch(action, directory, settings))
