"""Shared fixtures: an isolated home directory and default settings"""

import subprocess

import pytest

from clawdeploy.config.manager import ConfigManager


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Point HOME at a temporary directory"""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def settings(home, monkeypatch):
    """Default configuration with no environment overrides"""
    for var in ("MOLTBOT_DOMAIN", "SSL_EMAIL", "CLAWDEPLOY_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    cfg = ConfigManager(home / "absent.yaml").load()
    cfg["docker"]["startup_wait"] = 0
    return cfg


@pytest.fixture
def completed():
    """Factory for successful CompletedProcess results"""

    def make(returncode=0, stdout="", stderr=""):
        return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)

    return make
