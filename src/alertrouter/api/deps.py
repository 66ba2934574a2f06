from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import timedelta

from fastapi import Request

from alertrouter.alerts.ingest import AlertIngestor
from alertrouter.config import ConfigManager, RoutingConfig, Settings
from alertrouter.core.clock import Clock, SystemClock
from alertrouter.dispatch import Dispatcher
from alertrouter.notify import LoggingTransport, NotificationTransport, WebhookTransport


@dataclass
class RouterState:
    """Everything the API handlers share: config, dispatcher, ingestion."""

    settings: Settings
    config_manager: ConfigManager
    dispatcher: Dispatcher
    ingestor: AlertIngestor
    started_at: float = field(default_factory=time.time)


def build_transport(settings: Settings) -> NotificationTransport:
    if settings.webhook_url:
        return WebhookTransport(settings.webhook_url, timeout=settings.webhook_timeout)
    return LoggingTransport()


def effective_resolve_timeout(settings: Settings, config: RoutingConfig) -> timedelta:
    if config.resolve_timeout_set:
        return config.resolve_timeout
    return timedelta(seconds=settings.resolve_timeout_seconds)


def build_state(
    settings: Settings,
    config_manager: ConfigManager,
    transport: NotificationTransport | None = None,
    clock: Clock | None = None,
) -> RouterState:
    """Wire a dispatcher and ingestor to an already loaded configuration."""
    clock = clock or SystemClock()
    config = config_manager.config
    dispatcher = Dispatcher(
        config,
        transport=transport or build_transport(settings),
        clock=clock,
        tick_interval=settings.tick_interval_seconds,
    )
    ingestor = AlertIngestor(
        required_labels=settings.required_labels,
        resolve_timeout=effective_resolve_timeout(settings, config),
        clock=clock,
    )

    def _on_reload(new_config: RoutingConfig) -> None:
        ingestor.resolve_timeout = effective_resolve_timeout(settings, new_config)
        dispatcher.apply_config(new_config)

    config_manager.subscribe(_on_reload)
    return RouterState(
        settings=settings,
        config_manager=config_manager,
        dispatcher=dispatcher,
        ingestor=ingestor,
    )


def get_state(request: Request) -> RouterState:
    return request.app.state.router
