"""
Routing configuration loading and atomic reload.

A new configuration only replaces the active one once it has fully parsed
and validated. On failure the last known good configuration keeps serving
and the error is logged and re-raised to the caller.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable

import structlog
import yaml

from alertrouter.config.models import RoutingConfig
from alertrouter.core.errors import ConfigurationError
from alertrouter.logging import bind_context

logger = structlog.get_logger()

ReloadListener = Callable[[RoutingConfig], None]


def parse_config(text: str, source: str = "<string>") -> RoutingConfig:
    """Parse and validate a YAML routing configuration."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError("invalid YAML", {"source": source, "error": str(e)}) from e
    if data is None:
        raise ConfigurationError("configuration is empty", {"source": source})
    try:
        return RoutingConfig.from_dict(data)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ConfigurationError("malformed configuration", {"source": source, "error": str(e)}) from e


def load_config(path: str | Path) -> RoutingConfig:
    """Load a routing configuration file."""
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as e:
        raise ConfigurationError("cannot read configuration", {"path": str(path), "error": str(e)}) from e
    config = parse_config(text, source=str(path))
    logger.debug("loaded_config", path=str(path))
    return config


def dump_config(config: RoutingConfig) -> str:
    """Serialize a configuration back to YAML."""
    return yaml.safe_dump(config.to_dict(), sort_keys=False, default_flow_style=False)


class ConfigManager:
    """
    Holds the active routing configuration.

    Usage:
        manager = ConfigManager("alertmanager.yml")
        manager.reload()                    # raises on the first bad load
        manager.subscribe(dispatcher.apply_config)
        manager.reload()                    # later: swap atomically or keep old
    """

    def __init__(self, path: str | Path | None = None, config: RoutingConfig | None = None) -> None:
        self.path = Path(path) if path else None
        self._config = config
        self._lock = threading.Lock()
        self._listeners: list[ReloadListener] = []
        self.last_error: ConfigurationError | None = None
        self.reload_count = 0
        self.failed_reloads = 0

    @property
    def config(self) -> RoutingConfig:
        if self._config is None:
            raise ConfigurationError("no configuration loaded")
        return self._config

    @property
    def loaded(self) -> bool:
        return self._config is not None

    def subscribe(self, listener: ReloadListener) -> None:
        self._listeners.append(listener)

    def reload(self, path: str | Path | None = None) -> RoutingConfig:
        """Load from disk and activate, keeping the previous config on failure."""
        target = Path(path) if path else self.path
        if target is None:
            raise ConfigurationError("no configuration path set")
        try:
            config = load_config(target)
        except ConfigurationError as e:
            self._record_failure(e, source=str(target))
            raise
        self.path = target
        return self.activate(config)

    def reload_text(self, text: str) -> RoutingConfig:
        try:
            config = parse_config(text)
        except ConfigurationError as e:
            self._record_failure(e, source="<string>")
            raise
        return self.activate(config)

    def activate(self, config: RoutingConfig) -> RoutingConfig:
        with self._lock:
            self._config = config
            self.last_error = None
            self.reload_count += 1
            listeners = list(self._listeners)
            generation = self.reload_count
        log = bind_context(config_file=str(self.path) if self.path else None, generation=generation)
        log.info(
            "config_activated",
            receivers=len(config.receivers),
            routes=sum(1 for _ in config.route.root.walk()),
            inhibit_rules=len(config.inhibit_rules),
        )
        for listener in listeners:
            listener(config)
        return config

    def _record_failure(self, error: ConfigurationError, source: str) -> None:
        with self._lock:
            self.last_error = error
            self.failed_reloads += 1
            keeping = self._config is not None
        # details may repeat "source"; event fields win over bound ones
        log = bind_context(source=source, failed_reloads=self.failed_reloads)
        log.error("config_reload_failed", message=error.message, keeping_previous=keeping, **error.details)
