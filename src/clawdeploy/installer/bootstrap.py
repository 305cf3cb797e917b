"""Host installation of the Moltbot gateway behind Nginx."""

import getpass
import os
import shlex
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel

from clawdeploy.config import expand
from clawdeploy.errors import CommandError, DeployError, PrerequisiteError
from clawdeploy.logging_conf import get_logger

from .artifacts import is_valid_domain, render_gateway_config, render_nginx_conf, render_systemd_unit
from .shell import primary_ip, run_command, which, write_private_file, write_root_file
from .token import ensure_token

console = Console()
logger = get_logger(__name__)

OS_RELEASE = Path("/etc/os-release")

APT_PACKAGES = [
    "curl",
    "git",
    "jq",
    "ca-certificates",
    "openssl",
    "gnupg",
    "nginx",
    "certbot",
    "python3-certbot-nginx",
    "ufw",
]


def check_root() -> None:
    """Refuse to run as root; privileged steps go through sudo."""
    if os.geteuid() == 0:
        raise PrerequisiteError("Don't run the installer as root. It will use sudo when needed.")


def parse_os_release(text: str) -> Dict[str, str]:
    values = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, raw = line.split("=", 1)
        parts = shlex.split(raw)
        values[key] = parts[0] if parts else ""
    return values


def detect_os(os_release: Path = OS_RELEASE) -> Dict[str, str]:
    if not os_release.exists():
        raise PrerequisiteError("Cannot detect OS. The installer supports Ubuntu/Debian.")

    values = parse_os_release(os_release.read_text())
    info = {"id": values.get("ID", ""), "version": values.get("VERSION_ID", "")}
    console.print(f"[blue][INFO][/blue] Detected OS: {info['id']} {info['version']}")
    return info


def check_domain(settings: Dict[str, Any]) -> None:
    domain = settings["nginx"]["domain"]
    if domain and not is_valid_domain(domain):
        raise PrerequisiteError(f"Invalid domain {domain!r}. Expected a host name such as chat.example.com.")


def install_prerequisites(settings: Dict[str, Any]) -> None:
    _step("Installing prerequisites...")
    run_command(["sudo", "apt-get", "update"])
    run_command(["sudo", "apt-get", "install", "-y", *APT_PACKAGES])
    _info("Prerequisites installed")


def node_major_version() -> Optional[int]:
    """Major version of the installed node, or None"""
    if not which("node"):
        return None
    result = run_command(["node", "-v"], check=False)
    version = (result.stdout or "").strip().lstrip("v")
    try:
        return int(version.split(".")[0])
    except ValueError:
        return None


def install_nodejs(settings: Dict[str, Any]) -> None:
    major = int(settings["gateway"]["node_major"])
    _step(f"Installing Node.js {major}...")

    current = node_major_version()
    if current is not None and current >= major:
        _info(f"Node.js {current} already installed")
        return

    setup_url = f"https://deb.nodesource.com/setup_{major}.x"
    run_command(["bash", "-c", f"curl -fsSL {setup_url} | sudo -E bash -"])
    run_command(["sudo", "apt-get", "install", "-y", "nodejs"])
    _info(f"Node.js {node_major_version()} installed")


def setup_swap(settings: Dict[str, Any]) -> None:
    swap = settings["swap"]
    swapfile = Path(swap["path"])
    _step(f"Setting up swap file ({swap['size']})...")

    if swapfile.exists():
        _info("Swap file already exists")
        return

    run_command(["sudo", "fallocate", "-l", str(swap["size"]), str(swapfile)])
    run_command(["sudo", "chmod", "600", str(swapfile)])
    run_command(["sudo", "mkswap", str(swapfile)])
    run_command(["sudo", "swapon", str(swapfile)])

    fstab = Path("/etc/fstab")
    if not fstab.exists() or str(swapfile) not in fstab.read_text():
        run_command(["sudo", "tee", "-a", str(fstab)], input=f"{swapfile} none swap sw 0 0\n")

    run_command(["sudo", "sysctl", f"vm.swappiness={swap['swappiness']}"])
    _info("Swap configured")


def install_gateway(settings: Dict[str, Any]) -> None:
    gateway = settings["gateway"]
    _step("Installing Moltbot...")
    run_command(["sudo", "npm", "install", "-g", gateway["package"]])

    try:
        result = run_command([gateway["binary"], "--version"], check=False)
        version = result.stdout.strip() if result.returncode == 0 else ""
    except CommandError:
        version = ""
    _info(f"Moltbot installed: {version or 'version check pending'}")


def generate_gateway_token(settings: Dict[str, Any], rotate: bool = False) -> str:
    _step("Generating gateway authentication token...")
    token_file = expand(settings["gateway"]["token_file"])

    token, created = ensure_token(token_file, rotate=rotate)
    if created:
        _info(f"Gateway token generated and saved to {token_file}")
        console.print("[yellow]IMPORTANT: Save this token securely![/yellow]")
    else:
        _info(f"Keeping existing gateway token from {token_file} (use --rotate-token to replace it)")
    console.print(f"Token: [green]{token}[/green]")
    return token


def nginx_site_paths(settings: Dict[str, Any]) -> Tuple[Path, Path]:
    nginx = settings["nginx"]
    filename = f"{nginx['site_name']}.conf"
    return Path(nginx["sites_available"]) / filename, Path(nginx["sites_enabled"]) / filename


def configure_nginx(settings: Dict[str, Any]) -> None:
    _step("Configuring Nginx reverse proxy...")
    check_domain(settings)
    domain = settings["nginx"]["domain"]

    if not domain:
        _warn(f"No domain set. Nginx will answer on any host name (server IP: {primary_ip()})")
        _info("Set MOLTBOT_DOMAIN environment variable for a custom domain")

    available, enabled = nginx_site_paths(settings)
    write_root_file(available, render_nginx_conf(settings, domain=domain or None))

    run_command(["sudo", "rm", "-f", str(Path(settings["nginx"]["sites_enabled"]) / "default")])
    run_command(["sudo", "ln", "-sf", str(available), str(enabled)])

    run_command(["sudo", "nginx", "-t"])
    run_command(["sudo", "systemctl", "reload", "nginx"])
    run_command(["sudo", "systemctl", "enable", "nginx"])
    _info("Nginx configured and reloaded")


def configure_firewall(settings: Dict[str, Any]) -> None:
    _step("Configuring firewall...")
    alt_port = settings["nginx"]["alt_port"]

    run_command(["sudo", "ufw", "allow", "OpenSSH"])
    run_command(["sudo", "ufw", "allow", "Nginx Full"])
    run_command(["sudo", "ufw", "allow", f"{alt_port}/tcp"])
    run_command(["sudo", "ufw", "--force", "enable"])

    _info("Firewall configured")
    result = run_command(["sudo", "ufw", "status", "verbose"])
    if result.stdout:
        console.print(result.stdout, markup=False)


def gateway_config_path(settings: Dict[str, Any]) -> Path:
    gateway = settings["gateway"]
    return expand(gateway["config_dir"]) / gateway["config_file"]


def create_gateway_config(settings: Dict[str, Any], token: str) -> Path:
    _step("Creating Moltbot configuration...")
    config_path = gateway_config_path(settings)

    config_path.parent.mkdir(parents=True, exist_ok=True)
    expand(settings["gateway"]["workspace_dir"]).mkdir(parents=True, exist_ok=True)

    write_private_file(config_path, render_gateway_config(token, settings))
    _info(f"Moltbot config created at {config_path}")
    return config_path


def systemd_unit_path(settings: Dict[str, Any]) -> Path:
    service = settings["gateway"]["service_name"]
    return Path.home() / ".config" / "systemd" / "user" / f"{service}.service"


def create_systemd_service(settings: Dict[str, Any], token: str) -> Path:
    _step("Creating systemd service for Moltbot gateway...")
    gateway = settings["gateway"]

    exec_path = which(gateway["binary"])
    if not exec_path:
        raise PrerequisiteError(f"'{gateway['binary']}' not found on PATH")

    unit_path = systemd_unit_path(settings)
    write_private_file(unit_path, render_systemd_unit(settings, token, exec_path))

    # Lingering keeps the user manager running without an active login
    run_command(["sudo", "loginctl", "enable-linger", getpass.getuser()])
    run_command(["systemctl", "--user", "daemon-reload"])
    run_command(["systemctl", "--user", "enable", gateway["service_name"]])

    _info("Systemd user service created")
    return unit_path


def install_docker(settings: Dict[str, Any]) -> None:
    _step("Installing Docker (optional, for sandboxing)...")

    if which("docker"):
        _info("Docker already installed")
        return

    run_command(["bash", "-c", "curl -fsSL https://get.docker.com | sudo sh"])
    run_command(["sudo", "usermod", "-aG", "docker", getpass.getuser()])
    _info("Docker installed. You may need to log out and back in for group changes.")


def setup_ssl(settings: Dict[str, Any]) -> None:
    _step("Setting up SSL (optional)...")
    domain = settings["nginx"]["domain"]

    if not domain:
        _warn("No domain set. Skipping SSL setup.")
        _info("To enable SSL later, run:")
        console.print("  sudo certbot --nginx -d yourdomain.com")
        return

    check_domain(settings)
    email = settings["ssl"]["email"] or f"admin@{domain}"

    run_command(["sudo", "nginx", "-t"])
    run_command(["sudo", "systemctl", "reload", "nginx"])
    run_command(
        [
            "sudo",
            "certbot",
            "--nginx",
            "-d",
            domain,
            "--non-interactive",
            "--agree-tos",
            "--email",
            email,
        ]
    )
    _info(f"SSL certificate installed for {domain}")


def run_onboarding(settings: Dict[str, Any], token: str) -> None:
    _step("Running Moltbot onboarding...")

    console.print("\n[yellow]Interactive onboarding is starting...[/yellow]")
    console.print("When prompted:")
    console.print("  - Gateway bind: [green]lan[/green] (to allow reverse proxy)")
    console.print("  - Gateway auth: [green]token[/green]")
    console.print(f"  - Gateway token: [green]{token}[/green]")
    console.print("  - Install Gateway daemon: [green]No[/green] (the systemd user service is already set up)")
    console.print()

    try:
        click.prompt(
            "Press Enter to start onboarding (or Ctrl+C to skip)",
            default="",
            show_default=False,
            prompt_suffix="",
        )
    except click.Abort:
        console.print()
        _warn("Onboarding skipped; run it later with: moltbot onboard")
        return

    # Onboarding is optional; a failed wizard should not fail the install
    try:
        result = run_command(
            [settings["gateway"]["binary"], "onboard", "--no-install-daemon"],
            check=False,
            capture=False,
        )
    except CommandError as e:
        _warn(f"Onboarding could not start: {e}")
        return
    if result.returncode != 0:
        _warn(f"Onboarding exited with code {result.returncode}; run it again later with: moltbot onboard")


def print_summary(settings: Dict[str, Any], token: str) -> None:
    server_ip = primary_ip()
    domain = settings["nginx"]["domain"]
    service = settings["gateway"]["service_name"]
    alt_port = settings["nginx"]["alt_port"]
    available, _ = nginx_site_paths(settings)

    console.print()
    console.print(Panel.fit("Installation Complete!", style="bold blue"))

    console.print("\n[green]Access URLs:[/green]")
    console.print(f"  • HTTP:  http://{server_ip}/")
    console.print(f"  • Alt:   http://{server_ip}:{alt_port}/")
    if domain:
        console.print(f"  • HTTPS: https://{domain}/")

    console.print("\n[green]Gateway Token:[/green]")
    console.print(f"  {token}")

    console.print("\n[green]Useful Commands:[/green]")
    console.print(f"  Start gateway:    systemctl --user start {service}")
    console.print(f"  Stop gateway:     systemctl --user stop {service}")
    console.print(f"  View logs:        journalctl --user -u {service} -f")
    console.print("  Check status:     moltbot status")
    console.print("  Health check:     moltbot health")
    console.print("  Verify install:   clawdeploy verify")
    console.print("  Device pairing:   moltbot devices list")
    console.print("  Approve device:   moltbot device approve <id>")

    console.print("\n[green]Configuration Files:[/green]")
    console.print(f"  Moltbot config:   {gateway_config_path(settings)}")
    console.print(f"  Nginx config:     {available}")
    console.print(f"  Systemd service:  {systemd_unit_path(settings)}")

    console.print("\n[yellow]Next Steps:[/yellow]")
    console.print(f"  1. Start the gateway: systemctl --user start {service}")
    console.print(f"  2. Access the Control UI: http://{server_ip}/?token=YOUR_TOKEN")
    console.print("  3. Configure your model provider (Anthropic API key)")
    console.print("  4. Set up messaging channels (WhatsApp, Telegram, etc.)")

    console.print("\n[red]Security Reminder:[/red]")
    console.print("  • Keep your gateway token secret!")
    console.print("  • Configure trustedProxies properly in clawdbot.json")
    console.print("  • Consider VPN/Tailscale for remote access instead of public exposure")
    console.print()


def _ask(question: str, default: bool, assume_yes: bool, choice: Optional[bool]) -> bool:
    if choice is not None:
        return choice
    if assume_yes:
        return default
    return click.confirm(question, default=default)


def full_install(
    settings: Dict[str, Any],
    assume_yes: bool = False,
    rotate_token: bool = False,
    docker: Optional[bool] = None,
    ssl: Optional[bool] = None,
    onboard: Optional[bool] = None,
) -> bool:
    """Run the full installation; stops at the first failed step."""
    console.print(
        Panel.fit(
            "Moltbot (Clawdbot) VM Installation\nSelf-hosted AI Assistant with Nginx Reverse Proxy",
            style="blue",
        )
    )

    nginx = settings["nginx"]
    state: Dict[str, Any] = {}

    try:
        check_root()
        detect_os()
        check_domain(settings)
    except DeployError as e:
        console.print(f"[red][ERROR][/red] {e}")
        return False

    console.print("\nThis will install:")
    console.print(f"  • Node.js {settings['gateway']['node_major']}")
    console.print("  • Moltbot (Clawdbot) AI Assistant")
    console.print(
        f"  • Nginx reverse proxy (ports {nginx['http_port']}, {nginx['https_port']}, "
        f"{nginx['alt_port']} → {settings['gateway']['port']})"
    )
    console.print("  • Docker (optional, for sandboxing)")
    console.print("  • Firewall rules")
    console.print("  • Systemd service\n")

    if not _ask("Continue with installation?", True, assume_yes, None):
        return True

    def token_step():
        state["token"] = generate_gateway_token(settings, rotate=rotate_token)

    steps: List[Tuple[str, Callable[[], None]]] = [
        ("Prerequisites", lambda: install_prerequisites(settings)),
        ("Node.js", lambda: install_nodejs(settings)),
        ("Swap", lambda: setup_swap(settings)),
        ("Moltbot", lambda: install_gateway(settings)),
        ("Gateway token", token_step),
        ("Nginx", lambda: configure_nginx(settings)),
        ("Firewall", lambda: configure_firewall(settings)),
        ("Gateway config", lambda: create_gateway_config(settings, state["token"])),
        ("Systemd service", lambda: create_systemd_service(settings, state["token"])),
    ]

    if not _run_steps(steps):
        return False

    optional: List[Tuple[str, Callable[[], None]]] = []

    if _ask("Install Docker for sandboxing?", False, assume_yes, docker):
        optional.append(("Docker", lambda: install_docker(settings)))

    if nginx["domain"] and _ask(f"Set up SSL certificate for {nginx['domain']}?", True, assume_yes, ssl):
        optional.append(("SSL", lambda: setup_ssl(settings)))

    if _ask("Run Moltbot onboarding wizard?", True, assume_yes, onboard):
        optional.append(("Onboarding", lambda: run_onboarding(settings, state["token"])))

    if not _run_steps(optional):
        return False

    print_summary(settings, state["token"])
    return True


def _run_steps(steps: List[Tuple[str, Callable[[], None]]]) -> bool:
    for name, func in steps:
        try:
            func()
        except DeployError as e:
            logger.debug("step %s failed", name, exc_info=True)
            console.print(f"[red][ERROR][/red] {e}")
            console.print(f"\n[red]✗ Installation failed at: {name}[/red]")
            return False
    return True


def _step(message: str) -> None:
    console.print(f"\n[green][STEP][/green] {message}")


def _info(message: str) -> None:
    console.print(f"[blue][INFO][/blue] {message}")


def _warn(message: str) -> None:
    console.print(f"[yellow][WARN][/yellow] {message}")
