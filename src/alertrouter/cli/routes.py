"""
CLI commands for inspecting the route tree.

Usage:
    alertrouter routes show <config-file>
    alertrouter routes test <config-file> alertname=LibertyServerDown severity=critical
    alertrouter routes test <config-file> severity=critical --verify-receivers critical

Exit codes:
    0 = ok
    1 = --verify-receivers did not match
    10 = configuration error
"""

from __future__ import annotations

import json

from rich.markup import escape
from rich.tree import Tree

from alertrouter.alerts.models import Alert
from alertrouter.cli.ux import console, error, success
from alertrouter.config import load_config
from alertrouter.core.errors import AlertValidationError, CheckFailed, main_with_error_handling
from alertrouter.routing import RouteNode, format_duration


def parse_labels(items: list[str]) -> dict[str, str]:
    """Parse ``name=value`` pairs from the command line."""
    labels: dict[str, str] = {}
    for item in items:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise AlertValidationError("labels must be name=value", {"label": item})
        labels[name.strip()] = value.strip().strip("\"'")
    return labels


def _describe(node: RouteNode) -> str:
    matchers = escape(", ".join(str(m) for m in node.matchers)) or "*"
    grouping = node.grouping
    group_by = ",".join(grouping.group_by) or "-"
    text = (
        f"[highlight]{node.receiver}[/highlight] {{{matchers}}} "
        f"[muted]group_by={group_by} wait={format_duration(grouping.group_wait)} "
        f"interval={format_duration(grouping.group_interval)} "
        f"repeat={format_duration(grouping.repeat_interval)}[/muted]"
    )
    if node.continue_:
        text += " [warning]continue[/warning]"
    return text


def _build_tree(node: RouteNode, tree: Tree) -> None:
    for child in node.routes:
        branch = tree.add(_describe(child))
        _build_tree(child, branch)


@main_with_error_handling()
def routes_show_command(config_file: str) -> int:
    """Print the route tree with effective grouping settings."""
    config = load_config(config_file)
    root = config.route.root
    tree = Tree(_describe(root))
    _build_tree(root, tree)
    console.print(tree)
    return 0


@main_with_error_handling()
def routes_test_command(
    config_file: str,
    labels: list[str],
    verify_receivers: str | None = None,
    output_format: str = "text",
) -> int:
    """Show which receivers an alert with the given labels is routed to."""
    config = load_config(config_file)
    alert = Alert(labels=parse_labels(labels))
    matches = config.route.resolve(alert)
    receivers = [m.receiver for m in matches]

    if output_format == "json":
        print(
            json.dumps(
                [
                    {
                        "receiver": m.receiver,
                        "route": m.route_id,
                        "group_by": list(m.grouping.group_by),
                        "group_labels": dict(m.grouping.group_labels(alert.labels)),
                    }
                    for m in matches
                ],
                indent=2,
            )
        )
    else:
        print(",".join(receivers))

    if verify_receivers is not None:
        expected = [r.strip() for r in verify_receivers.split(",") if r.strip()]
        if expected != receivers:
            error(f"expected receivers {expected}, got {receivers}")
            raise CheckFailed("receiver verification failed", {"expected": ",".join(expected)})
        success("receivers verified")
    return 0
