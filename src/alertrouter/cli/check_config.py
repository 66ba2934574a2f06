"""
Validate a routing configuration file.

Usage:
    alertrouter check-config alertmanager.yml

Exit codes:
    0 = valid
    10 = configuration error
"""

from __future__ import annotations

from alertrouter.cli.ux import error, header, print_table, success, warning
from alertrouter.config import load_config
from alertrouter.core.errors import ConfigurationError, format_error_message, main_with_error_handling
from alertrouter.routing import format_duration


@main_with_error_handling(log_errors=False)
def check_config_command(config_file: str) -> int:
    header(f"Checking {config_file}")
    try:
        config = load_config(config_file)
    except ConfigurationError as exc:
        error(format_error_message(exc))
        raise

    routes = list(config.route.root.walk())
    success(
        f"{len(config.receivers)} receivers, {len(routes)} routes, "
        f"{len(config.inhibit_rules)} inhibit rules"
    )
    print_table(
        "Receivers",
        ["Receiver", "Channels"],
        [
            [name, ", ".join(sorted(receiver.metadata)) or "(none)"]
            for name, receiver in sorted(config.receivers.items())
        ],
    )
    print_table(
        "Global",
        ["Setting", "Value"],
        [["resolve_timeout", format_duration(config.resolve_timeout)]],
    )
    unused = sorted(set(config.receivers) - config.route.receivers())
    if unused:
        warning(f"unused receivers: {', '.join(unused)}")
    return 0
