"""Subprocess helpers shared by the installer and the compose quick-start"""

import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.markup import escape

from clawdeploy.errors import CommandError
from clawdeploy.logging_conf import get_logger

console = Console()
logger = get_logger(__name__)


def run_command(
    cmd: List[str],
    cwd: Optional[Path] = None,
    check: bool = True,
    capture: bool = True,
    input: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """Run a command and return the result.

    With capture=False the child inherits the terminal, which interactive
    and streaming commands (logs -f, onboarding) need.
    """
    console.print(f"[dim]Running: {escape(' '.join(cmd))}[/dim]")
    logger.debug("exec %s (cwd=%s)", cmd, cwd)

    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=capture,
            text=True,
            input=input,
            env=env,
            check=False,
        )
    except FileNotFoundError as e:
        raise CommandError(cmd, 127, str(e)) from e

    if capture and result.stderr:
        logger.debug("stderr from %s: %s", cmd[0], result.stderr.strip())

    if check and result.returncode != 0:
        console.print(f"[red]Command failed with code {result.returncode}[/red]")
        if capture and result.stderr:
            console.print(f"[red]stderr: {escape(result.stderr)}[/red]")
        raise CommandError(cmd, result.returncode, result.stderr or "")

    return result


def check_prerequisite(command: List[str]) -> bool:
    """Check if a prerequisite is installed."""
    try:
        result = subprocess.run(command, capture_output=True, check=False)
        return result.returncode == 0
    except FileNotFoundError:
        return False


def which(name: str) -> Optional[str]:
    return shutil.which(name)


def write_root_file(path: Path, text: str) -> None:
    """Write a root-owned file through sudo tee"""
    run_command(["sudo", "tee", str(path)], input=text)


def primary_ip() -> str:
    """First address reported by hostname -I, or localhost"""
    try:
        result = run_command(["hostname", "-I"], check=False)
    except CommandError:
        return "localhost"
    addresses = (result.stdout or "").split()
    return addresses[0] if addresses else "localhost"


def write_private_file(path: Path, text: str) -> None:
    """Write a file readable by the owner only"""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(text)
    # O_CREAT mode is ignored for an existing file
    os.chmod(path, 0o600)
