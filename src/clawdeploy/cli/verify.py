"""Verification command"""

import click
from rich.console import Console
from rich.table import Table

from clawdeploy.installer.checks import verify_installation

console = Console()


@click.command()
@click.option("--offline", is_flag=True, help="Skip the HTTP probes")
@click.pass_context
def verify(ctx, offline):
    """Verify a host installation"""
    checks = verify_installation(ctx.obj["config"], probe=not offline)

    table = Table(title="Installation Verification", show_header=True)
    table.add_column("Check", style="cyan")
    table.add_column("Status")
    table.add_column("Detail", style="dim")

    failed = False
    for check in checks:
        if check.passed:
            status = "[green]✓[/green]"
        elif check.required:
            status = "[red]✗[/red]"
            failed = True
        else:
            status = "[yellow]–[/yellow]"
        table.add_row(check.name, status, check.detail)

    console.print(table)

    if failed:
        console.print("\n[yellow]⚠ Some checks failed[/yellow]")
        console.print("Review the rows above, or rerun: clawdeploy install")
        ctx.exit(1)

    console.print("\n[green]✓ Installation verified successfully[/green]")
