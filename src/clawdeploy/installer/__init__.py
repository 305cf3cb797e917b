"""Host installation orchestrator for the Moltbot gateway."""

from .bootstrap import (
    configure_firewall,
    configure_nginx,
    create_gateway_config,
    create_systemd_service,
    full_install,
    generate_gateway_token,
    install_gateway,
)

__all__ = [
    "configure_firewall",
    "configure_nginx",
    "create_gateway_config",
    "create_systemd_service",
    "full_install",
    "generate_gateway_token",
    "install_gateway",
]
