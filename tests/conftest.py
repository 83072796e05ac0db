"""Shared test fixtures and configuration."""
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Tuple

import pytest
import yaml
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from alertcore.indicators.catalog import build_catalog
from alertcore.notif.router import DeliveryResult, DeliveryRouter, FiringContext
from alertcore.rules.rule_defs import DeliveryChannel
from alertcore.storage.repo import RuleRepository


@pytest.fixture
def catalog():
    """Built-in indicator catalog (PRICE, RSI, MACD, BBANDS, MA, EMA)."""
    return build_catalog()


@pytest.fixture
def t0() -> datetime:
    return datetime(2025, 11, 11, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def price_payload() -> dict:
    """Valid simple-indicator submission as sent by the alert form."""
    return {
        "pair": "BTC/USDT",
        "indicatorId": "PRICE",
        "comparison": "ABOVE",
        "target": "70000",
        "cooldown": "5m",
        "deliveryChannels": ["telegram"],
    }


@pytest.fixture
def rsi_payload() -> dict:
    """Valid technical-indicator submission."""
    return {
        "pair": "ETH/USDT",
        "indicatorId": "RSI",
        "comparison": "BELOW",
        "target": "30",
        "timeframe": "4h",
        "outputValue": "value",
        "parameters": {"period": 21},
        "cooldown": "1h",
        "deliveryChannels": ["telegram", "webhook"],
    }


class RecordingSender:
    """Channel sender that records calls and returns a fixed result."""

    def __init__(self, result: DeliveryResult = None, exc: Exception = None):
        self.result = result or DeliveryResult.sent()
        self.exc = exc
        self.calls: List[Tuple[str, FiringContext]] = []
        self._lock = threading.Lock()

    def __call__(self, rule_id: str, context: FiringContext) -> DeliveryResult:
        with self._lock:
            self.calls.append((rule_id, context))
        if self.exc is not None:
            raise self.exc
        return self.result


@pytest.fixture
def senders():
    return {
        DeliveryChannel.TELEGRAM: RecordingSender(),
        DeliveryChannel.EMAIL: RecordingSender(),
        DeliveryChannel.WEBHOOK: RecordingSender(),
    }


@pytest.fixture
def router(senders) -> DeliveryRouter:
    return DeliveryRouter(senders)


@pytest.fixture
def session_factory():
    """In-memory SQLite shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def repository(session_factory) -> RuleRepository:
    repo = RuleRepository(session_factory)
    repo.init_db()
    return repo


@pytest.fixture
def test_config_yaml(tmp_path: Path) -> Path:
    """Create a temporary test config YAML file."""
    config = {
        'bot': {
            'name': 'Crypto Alerts Test',
            'version': '2.1.0',
        },
        'alerts': {
            'timezone': 'America/Sao_Paulo',
            'pairs': ['BTC/USDT', 'ETH/USDT'],
            'timeframes': ['1h', '4h', '1d'],
        },
        'delivery': {
            'telegram': {'chat_id': '${CHANNEL_CHAT_ID}'},
            'email': {'to': 'ops@example.com'},
            'webhook': {'url': 'https://hooks.example.com/alerts', 'timeout_seconds': 'abc'},
        },
        'indicators': [
            {
                'id': 'STOCH',
                'name': 'Stochastic Oscillator',
                'type': 'technical',
                'params': [
                    {'name': 'kPeriod', 'description': '%K period', 'default': 14, 'type': 'number'},
                    {'name': 'smooth', 'description': 'Smooth %K', 'default': True, 'type': 'boolean'},
                ],
                'outputs': ['valueK', 'valueD'],
            }
        ],
    }

    config_file = tmp_path / 'test_config.yaml'
    with open(config_file, 'w', encoding='utf-8') as f:
        yaml.dump(config, f)

    return config_file


@pytest.fixture
def test_env_vars(monkeypatch, test_config_yaml: Path):
    """Point the global config at the test YAML and reset the singleton."""
    import alertcore.config as config

    monkeypatch.setenv('CHANNEL_CHAT_ID', '-1001234567890')
    monkeypatch.setenv('CONFIG_FILE', str(test_config_yaml))
    monkeypatch.setattr(config, '_config_instance', None)
    yield
    config._config_instance = None
