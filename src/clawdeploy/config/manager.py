"""Configuration management for clawdeploy"""

import copy
import os
from pathlib import Path
from typing import Any, Dict

import yaml

from clawdeploy.errors import DeployError

DEFAULT_CONFIG_PATH = Path.home() / ".clawdeploy" / "config.yaml"

DEFAULTS: Dict[str, Any] = {
    "gateway": {
        "package": "moltbot@latest",
        "binary": "moltbot",
        "bind": "127.0.0.1",
        "port": 18789,
        "trusted_proxies": ["127.0.0.1", "::1"],
        "config_dir": "~/.clawdbot",
        "config_file": "clawdbot.json",
        "workspace_dir": "~/clawd",
        "token_file": "~/.moltbot_gateway_token",
        "token_env": "CLAWDBOT_GATEWAY_TOKEN",
        "service_name": "moltbot-gateway",
        "node_major": 22,
    },
    "nginx": {
        "site_name": "moltbot",
        "sites_available": "/etc/nginx/sites-available",
        "sites_enabled": "/etc/nginx/sites-enabled",
        "upstream_name": "moltbot_gateway",
        "http_port": 80,
        "https_port": 443,
        "alt_port": 8000,
        "domain": "",
    },
    "ssl": {
        "email": "",
    },
    "swap": {
        "path": "/swapfile",
        "size": "2G",
        "swappiness": 10,
    },
    "docker": {
        "project_dir": ".",
        "gateway_service": "openclaw-gateway",
        "cli_service": "openclaw-cli",
        "startup_wait": 10,
    },
    "logging": {
        "level": "info",
    },
}


# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "MOLTBOT_DOMAIN": ("nginx", "domain"),
    "SSL_EMAIL": ("ssl", "email"),
    "CLAWDEPLOY_LOG_LEVEL": ("logging", "level"),
}


def expand(path: str) -> Path:
    """Expand ~ in a configured path"""
    return Path(os.path.expanduser(str(path)))


def deep_update(target: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively fold updates into target in place; nested sections merge, scalars replace"""
    for key, value in updates.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            deep_update(current, value)
        else:
            target[key] = value
    return target


class ConfigManager:
    """Layered settings: built-in defaults, then the YAML file, then the environment"""

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH):
        self.config_path = config_path

    def load(self) -> Dict[str, Any]:
        settings = copy.deepcopy(DEFAULTS)
        deep_update(settings, self.read_file())

        for var, (section, key) in ENV_OVERRIDES.items():
            value = os.getenv(var)
            if value:
                settings[section][key] = value

        return settings

    def read_file(self) -> Dict[str, Any]:
        """Settings from the YAML file; a missing or empty file yields {}"""
        if not self.config_path.exists():
            return {}
        data = yaml.safe_load(self.config_path.read_text())
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise DeployError(f"{self.config_path}: expected a mapping at the top level")
        return data
