"""Root test configuration."""

import logging
from datetime import datetime, timedelta, timezone

import pytest
import structlog

LIBERTY_CONFIG = """
global:
  resolve_timeout: 5m

route:
  receiver: 'default'
  group_by: ['alertname', 'severity']
  group_wait: 30s
  group_interval: 5m
  repeat_interval: 4h

  routes:
    - receiver: 'critical'
      match:
        severity: critical
      continue: false

    - receiver: 'warning'
      match:
        severity: warning
      continue: false

receivers:
  - name: 'default'
    slack_configs:
      - channel: '#alerts'
        send_resolved: true
  - name: 'critical'
    slack_configs:
      - channel: '#alerts-critical'
  - name: 'warning'
  - name: 'null'

inhibit_rules:
  - source_match:
      alertname: 'LibertyServerDown'
    target_match_re:
      alertname: 'Liberty.*'
    equal: ['instance']

  - source_match:
      severity: 'critical'
    target_match:
      severity: 'warning'
    equal: ['alertname']
"""


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


class FakeClock:
    """Manually advanced clock; monotonic seconds and wall time move together."""

    def __init__(self, start: datetime | None = None) -> None:
        self.start = start or datetime(2025, 1, 1, tzinfo=timezone.utc)
        self.seconds = 0.0

    def monotonic(self) -> float:
        return self.seconds

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.seconds)

    def advance(self, seconds: float) -> None:
        self.seconds += seconds

    def set(self, seconds: float) -> None:
        self.seconds = seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def liberty_config_text():
    return LIBERTY_CONFIG


@pytest.fixture
def liberty_config_file(tmp_path):
    path = tmp_path / "alertmanager.yml"
    path.write_text(LIBERTY_CONFIG)
    return path
