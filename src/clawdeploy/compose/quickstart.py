"""Docker Compose quick-start for OpenClaw."""

import shutil
import time
from pathlib import Path
from typing import Any, Callable, Dict

from dotenv import dotenv_values
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from clawdeploy.errors import CommandError, PrerequisiteError
from clawdeploy.installer.artifacts import render_env_file, render_nginx_conf
from clawdeploy.installer.shell import check_prerequisite, primary_ip, run_command, write_private_file
from clawdeploy.installer.token import generate_token
from clawdeploy.logging_conf import get_logger

console = Console()
logger = get_logger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"
PROVIDER_KEYS = ("ANTHROPIC_API_KEY", "OPENAI_API_KEY")
GATEWAY_UPSTREAM = "openclaw-gateway:18789"

Action = Callable[[Path, Dict[str, Any]], int]


def compose(project_dir: Path, *args: str, capture: bool = True):
    return run_command(["docker", "compose", *args], cwd=project_dir, capture=capture)


def check_docker() -> None:
    if not shutil.which("docker"):
        console.print("[red]Docker is not installed. Please install Docker first:[/red]")
        console.print("  curl -fsSL https://get.docker.com | sh")
        raise PrerequisiteError("docker not found on PATH")

    if not check_prerequisite(["docker", "compose", "version"]):
        console.print("[red]Docker Compose is not available.[/red]")
        raise PrerequisiteError("docker compose plugin not available")


def materialize_project(project_dir: Path, settings: Dict[str, Any]) -> None:
    """Write the compose project files that are missing; existing ones are kept."""
    project_dir.mkdir(parents=True, exist_ok=True)

    files = {
        project_dir / "docker-compose.yml": (TEMPLATES_DIR / "docker-compose.yml").read_text(),
        project_dir / ".env.example": (TEMPLATES_DIR / "env.example").read_text(),
        project_dir / "nginx" / "default.conf": render_nginx_conf(settings, upstream=GATEWAY_UPSTREAM),
    }

    for path, content in files.items():
        if path.exists():
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        logger.info("created %s", path)


def setup_env(project_dir: Path) -> bool:
    """Create .env with a fresh token. Returns True when the file was created."""
    env_path = project_dir / ".env"
    if env_path.exists():
        return False

    console.print("[yellow]Creating .env file from template...[/yellow]")
    template = (project_dir / ".env.example").read_text()

    token = generate_token()
    write_private_file(env_path, render_env_file(template, token))

    console.print(f"[green]Generated gateway token: {token}[/green]")
    console.print()
    console.print("[yellow]Please edit .env and add your API keys:[/yellow]")
    console.print(f"  nano {env_path}")
    console.print()
    console.print(f"Required: {' or '.join(PROVIDER_KEYS)}")
    return True


def load_env(project_dir: Path) -> Dict[str, str]:
    return {k: v or "" for k, v in dotenv_values(project_dir / ".env").items()}


def check_api_key(project_dir: Path) -> None:
    env = load_env(project_dir)

    if not any(env.get(key) for key in PROVIDER_KEYS):
        console.print("[red]No API key configured![/red]")
        console.print(f"Please add {' or '.join(PROVIDER_KEYS)} to .env")
        raise PrerequisiteError("no model provider API key in .env")


def start_services(project_dir: Path, settings: Dict[str, Any]) -> None:
    console.print("[green]Pulling and starting OpenClaw services...[/green]")
    compose(project_dir, "pull")
    compose(project_dir, "up", "-d")

    console.print("\n[green]Waiting for services to start...[/green]")
    time.sleep(settings["docker"]["startup_wait"])

    result = compose(project_dir, "ps")
    if result.stdout:
        console.print(result.stdout, markup=False)


def show_info(project_dir: Path, settings: Dict[str, Any]) -> None:
    token = load_env(project_dir).get("GATEWAY_TOKEN", "")
    server_ip = primary_ip()
    cli_service = settings["docker"]["cli_service"]
    gateway_service = settings["docker"]["gateway_service"]

    console.print()
    console.print(Panel.fit("OpenClaw is Running!", style="bold blue"))

    console.print("\n[green]Access URLs:[/green]")
    console.print(f"  • Control UI: http://{server_ip}/")
    console.print(f"  • Alt Port:   http://{server_ip}:8000/")

    console.print("\n[green]Gateway Token:[/green]")
    console.print(f"  {token}")

    console.print("\n[green]Access with token:[/green]")
    console.print(f"  http://{server_ip}/?token={token}")

    console.print("\n[green]Useful Commands:[/green]")
    console.print("  View logs:        clawdeploy docker logs")
    console.print("  Stop services:    clawdeploy docker stop")
    console.print("  Restart:          clawdeploy docker restart")
    console.print(f"  CLI access:       docker compose run --rm {cli_service}")
    console.print(f"  Shell access:     docker compose exec {gateway_service} bash")
    console.print(f"  Dashboard URL:    docker compose run --rm {cli_service} dashboard --no-open")
    console.print()


def start(project_dir: Path, settings: Dict[str, Any]) -> int:
    console.print(Panel.fit("OpenClaw Docker Quick Start", style="blue"))
    check_docker()
    materialize_project(project_dir, settings)

    if setup_env(project_dir):
        # Operator has to add a provider key before the first start
        return 0

    check_api_key(project_dir)
    start_services(project_dir, settings)
    show_info(project_dir, settings)
    return 0


def stop(project_dir: Path, settings: Dict[str, Any]) -> int:
    compose(project_dir, "down")
    console.print("OpenClaw stopped")
    return 0


def restart(project_dir: Path, settings: Dict[str, Any]) -> int:
    compose(project_dir, "restart")
    console.print("OpenClaw restarted")
    return 0


def logs(project_dir: Path, settings: Dict[str, Any]) -> int:
    compose(project_dir, "logs", "-f", capture=False)
    return 0


def status(project_dir: Path, settings: Dict[str, Any]) -> int:
    compose(project_dir, "ps", capture=False)
    return 0


def cli(project_dir: Path, settings: Dict[str, Any]) -> int:
    compose(project_dir, "run", "--rm", settings["docker"]["cli_service"], capture=False)
    return 0


def build(project_dir: Path, settings: Dict[str, Any]) -> int:
    console.print("Pulling latest OpenClaw image...")
    compose(project_dir, "pull", capture=False)
    return 0


def onboard(project_dir: Path, settings: Dict[str, Any]) -> int:
    console.print("Running OpenClaw onboarding...")
    compose(project_dir, "run", "--rm", settings["docker"]["cli_service"], "onboard", capture=False)
    return 0


def dashboard(project_dir: Path, settings: Dict[str, Any]) -> int:
    compose(
        project_dir,
        "run",
        "--rm",
        settings["docker"]["cli_service"],
        "dashboard",
        "--no-open",
        capture=False,
    )
    return 0


ACTIONS: Dict[str, Action] = {
    "start": start,
    "stop": stop,
    "restart": restart,
    "logs": logs,
    "status": status,
    "cli": cli,
    "build": build,
    "onboard": onboard,
    "dashboard": dashboard,
}

USAGE = f"Usage: clawdeploy docker {{{'|'.join(ACTIONS)}}}"


def dispatch(action: str, project_dir: Path, settings: Dict[str, Any]) -> int:
    """Run a quick-start action and return the process exit code."""
    handler = ACTIONS.get(action)
    if handler is None:
        console.print(USAGE, markup=False, soft_wrap=True)
        return 1

    try:
        return handler(project_dir, settings)
    except PrerequisiteError as e:
        logger.debug("prerequisite missing for %s: %s", action, e)
        return 1
    except CommandError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        return e.returncode or 1
