"""Post-install checks for a host installation"""

import json
import re
from typing import Any, Dict, List, NamedTuple, Optional

from clawdeploy.api.client import Client
from clawdeploy.config import expand

from .bootstrap import gateway_config_path, systemd_unit_path
from .shell import which
from .token import is_valid_token, read_token


class Check(NamedTuple):
    name: str
    passed: bool
    detail: str = ""
    required: bool = True


def unit_token(unit_text: str, env_name: str) -> Optional[str]:
    """Token value from the unit's Environment= line, if present"""
    match = re.search(rf'^Environment="{re.escape(env_name)}=([^"]*)"', unit_text, re.MULTILINE)
    return match.group(1) if match else None


def config_token(config_text: str) -> Optional[str]:
    try:
        data = json.loads(config_text)
    except ValueError:
        return None

    # Hand-edited files may hold any JSON value at each level
    for key in ("gateway", "auth"):
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    if not isinstance(data, dict):
        return None
    token = data.get("token")
    return token if isinstance(token, str) else None


def check_tools(settings: Dict[str, Any]) -> List[Check]:
    tools = [
        ("node", True),
        (settings["gateway"]["binary"], True),
        ("nginx", True),
        ("docker", False),
    ]
    checks = []
    for tool, required in tools:
        path = which(tool)
        checks.append(Check(f"{tool} installed", bool(path), path or "not on PATH", required))
    return checks


def check_token_consistency(settings: Dict[str, Any]) -> List[Check]:
    """The token file, gateway config and service unit must agree."""
    gateway = settings["gateway"]
    token_file = expand(gateway["token_file"])
    token = read_token(token_file)

    checks = [Check("Gateway token file", is_valid_token(token), str(token_file))]
    if not is_valid_token(token):
        return checks

    config_path = gateway_config_path(settings)
    if config_path.exists():
        found = config_token(config_path.read_text())
        checks.append(Check("Config token matches", found == token, str(config_path)))
    else:
        checks.append(Check("Config token matches", False, f"{config_path} missing"))

    unit_path = systemd_unit_path(settings)
    if unit_path.exists():
        found = unit_token(unit_path.read_text(), gateway["token_env"])
        checks.append(Check("Service token matches", found == token, str(unit_path)))
    else:
        checks.append(Check("Service token matches", False, f"{unit_path} missing"))

    return checks


def check_endpoints(settings: Dict[str, Any]) -> List[Check]:
    gateway = settings["gateway"]
    token = read_token(expand(gateway["token_file"]))

    proxy = Client(f"http://127.0.0.1:{settings['nginx']['http_port']}")
    upstream = Client(
        f"http://{gateway['bind']}:{gateway['port']}",
        token=token if is_valid_token(token) else "",
    )

    status = upstream.gateway_status()
    detail = f"HTTP {status['status_code']}" if status.get("status_code") else status.get("error", "")

    results = [
        Check("Nginx health endpoint", proxy.nginx_health(), "/nginx-health"),
        Check("Gateway reachable", status["reachable"], detail),
    ]
    if status["reachable"]:
        results.append(Check("Gateway accepts token", status["authorized"], "bearer token from the token file"))
    return results


def verify_installation(settings: Dict[str, Any], probe: bool = True) -> List[Check]:
    checks = check_tools(settings) + check_token_consistency(settings)
    if probe:
        checks += check_endpoints(settings)
    return checks
