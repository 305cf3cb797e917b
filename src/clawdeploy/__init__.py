"""clawdeploy - provisioning tools for the Moltbot/OpenClaw chat gateway"""

__version__ = "0.1.0"
