"""
CLI commands for alertrouter.
"""

from alertrouter.cli.check_config import check_config_command
from alertrouter.cli.routes import routes_show_command, routes_test_command

__all__ = [
    "check_config_command",
    "routes_show_command",
    "routes_test_command",
]
