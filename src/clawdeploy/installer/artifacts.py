"""Renderers for the files the installer writes"""

import json
import re
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import FileSystemLoader
from jinja2.sandbox import SandboxedEnvironment

from .token import PLACEHOLDER_TOKEN

TEMPLATES_DIR = Path(__file__).parent / "templates"

_ENV_TOKEN_RE = re.compile(r"^GATEWAY_TOKEN=.*$", re.MULTILINE)
_LABEL = r"[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
_DOMAIN_RE = re.compile(rf"{_LABEL}(?:\.{_LABEL})*")


def is_valid_domain(value: Optional[str]) -> bool:
    """Dot-separated host name labels, nothing nginx or certbot would parse further"""
    return bool(value) and len(value) <= 253 and _DOMAIN_RE.fullmatch(value) is not None


def _environment() -> SandboxedEnvironment:
    return SandboxedEnvironment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        keep_trailing_newline=True,
    )


def build_gateway_config(token: Optional[str], settings: Dict[str, Any]) -> Dict[str, Any]:
    """Gateway JSON configuration with token auth behind a local proxy"""
    gateway = settings["gateway"]

    return {
        "gateway": {
            "bind": gateway["bind"],
            "port": int(gateway["port"]),
            "trustedProxies": list(gateway["trusted_proxies"]),
            "auth": {
                "mode": "token",
                "token": token or PLACEHOLDER_TOKEN,
            },
            "controlUi": {
                "enabled": True,
                "allowInsecureAuth": False,
            },
        },
        "agents": {
            "defaults": {
                "sandbox": {
                    "mode": "non-main",
                    "scope": "session",
                    "workspaceAccess": "ro",
                },
            },
        },
        "channels": {
            "whatsapp": {"enabled": False, "allowFrom": []},
            "telegram": {"enabled": False},
            "discord": {"enabled": False},
        },
    }


def render_gateway_config(token: Optional[str], settings: Dict[str, Any]) -> str:
    return json.dumps(build_gateway_config(token, settings), indent=2) + "\n"


def render_nginx_conf(
    settings: Dict[str, Any],
    domain: Optional[str] = None,
    upstream: Optional[str] = None,
) -> str:
    """Render the reverse-proxy site.

    The domain only lands in server_name; without one nginx matches any host.
    """
    if domain and not is_valid_domain(domain):
        raise ValueError(f"invalid domain name: {domain!r}")

    nginx = settings["nginx"]
    gateway = settings["gateway"]

    template = _environment().get_template("nginx.conf.j2")
    return template.render(
        upstream_name=nginx["upstream_name"],
        upstream=upstream or f"{gateway['bind']}:{gateway['port']}",
        http_port=nginx["http_port"],
        alt_port=nginx["alt_port"],
        server_name=domain or "_",
    )


def render_systemd_unit(settings: Dict[str, Any], token: str, exec_path: str) -> str:
    template = _environment().get_template("gateway.service.j2")
    return template.render(
        token_env=settings["gateway"]["token_env"],
        token=token,
        exec_path=exec_path,
    )


def render_env_file(template_text: str, token: str) -> str:
    """Set GATEWAY_TOKEN in KEY=VALUE text, appending the line if absent"""
    line = f"GATEWAY_TOKEN={token}"
    if _ENV_TOKEN_RE.search(template_text):
        return _ENV_TOKEN_RE.sub(lambda _: line, template_text, count=1)

    if template_text and not template_text.endswith("\n"):
        template_text += "\n"
    return template_text + line + "\n"
