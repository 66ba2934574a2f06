"""
alertrouter configuration system.

- Pydantic-based settings (environment variables, .env files)
- Alertmanager-style routing configuration (route tree, receivers,
  inhibition rules) with atomic reload
"""

from alertrouter.config.loader import ConfigManager, dump_config, load_config, parse_config
from alertrouter.config.models import Receiver, RoutingConfig
from alertrouter.config.settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Routing configuration
    "Receiver",
    "RoutingConfig",
    # Loader
    "ConfigManager",
    "dump_config",
    "load_config",
    "parse_config",
]
