import os
import yaml
from pathlib import Path
from typing import Dict, List, Any, Optional
from dotenv import load_dotenv

from alertcore.utils.timeframes import TIMEFRAMES

# Load environment variables from .env
load_dotenv(dotenv_path=os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))

# Environment variables (secrets)
BOT_TOKEN = os.getenv("BOT_TOKEN", "")
CHANNEL_CHAT_ID = os.getenv("CHANNEL_CHAT_ID", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CONFIG_FILE = os.getenv("CONFIG_FILE", "./configs/default.yaml")

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
ALERT_EMAIL_TO = os.getenv("ALERT_EMAIL_TO", "")

# Pairs offered by the alert form
DEFAULT_PAIRS = [
    "BTC/USDT", "ETH/USDT", "BNB/USDT", "ADA/USDT", "SOL/USDT", "XRP/USDT",
    "DOT/USDT", "DOGE/USDT", "AVAX/USDT", "LUNA/USDT", "LINK/USDT", "ATOM/USDT",
]


def _substitute_env(value: Any) -> Any:
    """Resolve ${ENV} placeholders nested inside dicts and lists (missing vars become "")."""
    if isinstance(value, dict):
        return {k: _substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v) for v in value]
    if isinstance(value, str) and value.startswith('${') and value.endswith('}'):
        return os.getenv(value[2:-1], "")
    return value


class ConfigLoader:
    """Loads and validates YAML configuration with environment variable substitution."""

    REQUIRED_SECTIONS = ['bot', 'alerts', 'delivery']

    def __init__(self, config_path: str):
        self.config_path = Path(config_path)
        self._config: Optional[Dict[str, Any]] = None
        self._load()

    def _load(self):
        """Load YAML config file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as f:
            self._config = yaml.safe_load(f) or {}

        for section in self.REQUIRED_SECTIONS:
            if section not in self._config:
                raise ValueError(f"Missing required config section: {section}")

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get config value by dot-notation path.
        Example: config.get('bot.version') -> '1.0.0'
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
                if value is None:
                    return default
            else:
                return default

        # Handle environment variable substitution in strings
        if isinstance(value, str) and value.startswith('${') and value.endswith('}'):
            env_var = value[2:-1]
            return os.getenv(env_var, default)

        return _substitute_env(value)

    @property
    def raw(self) -> Dict[str, Any]:
        """Get raw config dict."""
        return self._config


# Global config instance (lazy-loaded)
_config_instance: Optional[ConfigLoader] = None


def get_config() -> ConfigLoader:
    """Get global config instance (singleton pattern)."""
    global _config_instance
    if _config_instance is None:
        _config_instance = ConfigLoader(os.getenv("CONFIG_FILE", CONFIG_FILE))
    return _config_instance


def reload_config():
    """Reload config from file."""
    global _config_instance
    _config_instance = ConfigLoader(os.getenv("CONFIG_FILE", CONFIG_FILE))


def get_bot_version() -> str:
    return get_config().get('bot.version', '1.0.0')


def get_bot_name() -> str:
    return get_config().get('bot.name', 'Crypto Alerts')


def get_allowed_pairs() -> List[str]:
    """
    Pairs a rule may target. An explicit empty list disables the check
    (any non-empty pair is accepted).
    """
    pairs = get_config().get('alerts.pairs')
    if pairs is None:
        return list(DEFAULT_PAIRS)
    if not isinstance(pairs, list):
        return list(DEFAULT_PAIRS)
    return [str(p) for p in pairs]


def get_timeframes() -> List[str]:
    """Timeframes accepted for technical indicators."""
    timeframes = get_config().get('alerts.timeframes')
    if not isinstance(timeframes, list) or not timeframes:
        return list(TIMEFRAMES)
    return [str(tf) for tf in timeframes]


def get_alert_timezone() -> str:
    return get_config().get('alerts.timezone', 'UTC')


def get_delivery_config() -> Dict[str, Any]:
    """Get delivery channel configuration with safe defaults."""
    delivery = get_config().get('delivery', {})
    if not isinstance(delivery, dict):
        delivery = {}

    delivery.setdefault('telegram', {})
    delivery.setdefault('email', {})
    delivery.setdefault('webhook', {})

    webhook = delivery['webhook']
    try:
        webhook['timeout_seconds'] = float(webhook.get('timeout_seconds', 10))
        if webhook['timeout_seconds'] <= 0:
            webhook['timeout_seconds'] = 10.0
    except (ValueError, TypeError):
        webhook['timeout_seconds'] = 10.0

    return delivery


def get_indicator_definitions() -> List[Dict[str, Any]]:
    """Extra indicators declared in config, registered next to the built-in catalog."""
    definitions = get_config().get('indicators', [])
    if not isinstance(definitions, list):
        return []
    return definitions

