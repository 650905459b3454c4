"""
Configuration loading

Reads config.yaml into typed dataclasses. A missing file yields defaults; a
malformed one raises ConfigurationError.
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / 'config.yaml'


@dataclass
class ExchangeConfig:
    base_url: str = 'https://api.binance.com/api/v3'
    timeout: float = 10.0
    quote_asset: str = 'USDT'
    max_requests_per_minute: int = 1200
    min_request_interval: float = 0.0

    def __post_init__(self):
        if self.timeout <= 0:
            raise ConfigurationError(f"exchange.timeout must be > 0, got {self.timeout}")
        if self.max_requests_per_minute < 1:
            raise ConfigurationError(
                f"exchange.max_requests_per_minute must be >= 1, got {self.max_requests_per_minute}"
            )


@dataclass
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ConfigurationError(f"retry.max_attempts must be >= 1, got {self.max_attempts}")


@dataclass
class ScannerConfig:
    mode: str = 'BALANCED'
    symbols: List[str] = field(default_factory=list)    # empty: rank the universe
    universe: str = 'volume'                            # 'volume' or 'momentum'
    universe_size: int = 20
    min_quote_volume: float = 0.0
    working_interval: str = '1h'
    candle_limit: int = 300
    higher_intervals: List[str] = field(default_factory=lambda: ['1d', '4h'])
    higher_limit: int = 100
    trigger_interval: Optional[str] = '15m'
    trigger_limit: int = 100
    order_book_depth: int = 20
    batch_size: int = 3
    batch_delay: float = 0.5
    choppiness_threshold: float = 60.0
    cycle_minutes: float = 15.0
    cooldown_file: Optional[str] = None

    def __post_init__(self):
        if self.batch_size < 1:
            raise ConfigurationError(f"scanner.batch_size must be >= 1, got {self.batch_size}")
        if self.batch_delay < 0:
            raise ConfigurationError(f"scanner.batch_delay must be >= 0, got {self.batch_delay}")
        if self.universe not in ('volume', 'momentum'):
            raise ConfigurationError(f"scanner.universe must be 'volume' or 'momentum', got {self.universe!r}")
        if self.candle_limit < 1:
            raise ConfigurationError(f"scanner.candle_limit must be >= 1, got {self.candle_limit}")


@dataclass
class AppConfig:
    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    exchange: ExchangeConfig = field(default_factory=ExchangeConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    log_level: str = 'info'


def _build(cls, data: Any, section: str):
    """Instantiate a config dataclass, rejecting unknown keys"""
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigurationError(f"Section '{section}' must be a mapping")

    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown keys in '{section}': {unknown}")

    try:
        return cls(**data)
    except TypeError as e:
        raise ConfigurationError(f"Invalid '{section}' section: {e}") from e


def parse_config(raw: Optional[Dict[str, Any]]) -> AppConfig:
    """Build AppConfig from an already-parsed mapping"""
    if raw is None:
        return AppConfig()
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration root must be a mapping")

    unknown = sorted(set(raw) - {'scanner', 'exchange', 'retry', 'log_level'})
    if unknown:
        raise ConfigurationError(f"Unknown configuration sections: {unknown}")

    return AppConfig(
        scanner=_build(ScannerConfig, raw.get('scanner'), 'scanner'),
        exchange=_build(ExchangeConfig, raw.get('exchange'), 'exchange'),
        retry=_build(RetryConfig, raw.get('retry'), 'retry'),
        log_level=str(raw.get('log_level', 'info')).lower(),
    )


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Load configuration from YAML.

    Args:
        path: Config file (default: config.yaml at the repository root)

    Returns:
        AppConfig (defaults when the file does not exist)

    Raises:
        ConfigurationError if the file cannot be parsed or is malformed
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.info(f"No configuration file at {config_path}, using defaults")
        return AppConfig()

    try:
        with open(config_path, 'r') as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse {config_path}: {e}") from e

    config = parse_config(raw)
    logger.info(f"Loaded configuration from {config_path}")
    return config
