from .manager import DEFAULTS, ConfigManager, expand

__all__ = ["DEFAULTS", "ConfigManager", "expand"]
