"""
Configuration management and loading.

Handles the savings store location, the spend source command and the
week convention used by the savings store.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from ..core.periods import CalendarConvention
from ..sources.ccusage import DEFAULT_TIMEOUT_SECONDS
from ..storage.db import DEFAULT_DB_PATH


@dataclass(frozen=True)
class DatabaseConfig:
    """Savings store location."""
    path: str = DEFAULT_DB_PATH


@dataclass(frozen=True)
class SpendConfig:
    """How to invoke the external spend source."""
    command: Optional[List[str]] = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self):
        """Validate timeout is positive."""
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")


@dataclass(frozen=True)
class SavingsConfig:
    """Calendar settings of the savings store."""
    week_convention: CalendarConvention = CalendarConvention.LEGACY


@dataclass(frozen=True)
class EconomicsConfig:
    """Complete application configuration."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    spend: SpendConfig = field(default_factory=SpendConfig)
    savings: SavingsConfig = field(default_factory=SavingsConfig)


def default_config() -> EconomicsConfig:
    """Configuration used when no file is given."""
    return EconomicsConfig()


def load_economics_config(path: str) -> EconomicsConfig:
    """Load and validate configuration from a YAML file.

    Every section is optional, but unknown keys and wrongly typed values
    are rejected so a typo never silently falls back to a default.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated EconomicsConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    _check_keys(raw_config, {'database', 'spend', 'savings'}, "configuration")

    return EconomicsConfig(
        database=_parse_database(_section(raw_config, 'database')),
        spend=_parse_spend(_section(raw_config, 'spend')),
        savings=_parse_savings(_section(raw_config, 'savings'))
    )


def _section(raw_config: Dict, name: str) -> Dict:
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    return data


def _check_keys(data: Dict, allowed: set, path: str) -> None:
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")


def _parse_database(data: Dict) -> DatabaseConfig:
    _check_keys(data, {'path'}, "database")
    if 'path' not in data:
        return DatabaseConfig()

    db_path = data['path']
    if not isinstance(db_path, str) or not db_path.strip():
        raise ValueError("'path' in database must be a non-empty string")
    return DatabaseConfig(path=db_path)


def _parse_spend(data: Dict) -> SpendConfig:
    _check_keys(data, {'command', 'timeout_seconds'}, "spend")

    command = data.get('command')
    if command is not None:
        if isinstance(command, str):
            command = command.split()
        if (not isinstance(command, list) or not command
                or not all(isinstance(part, str) and part for part in command)):
            raise ValueError("'command' in spend must be a non-empty list of strings")

    timeout = data.get('timeout_seconds', DEFAULT_TIMEOUT_SECONDS)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValueError("'timeout_seconds' in spend must be > 0")

    return SpendConfig(command=command, timeout_seconds=float(timeout))


def _parse_savings(data: Dict) -> SavingsConfig:
    _check_keys(data, {'week_convention'}, "savings")
    if 'week_convention' not in data:
        return SavingsConfig()

    convention_str = data['week_convention']
    if not isinstance(convention_str, str):
        raise ValueError("'week_convention' in savings must be a string")

    try:
        convention = CalendarConvention(convention_str.lower())
    except ValueError:
        valid = [convention.value for convention in CalendarConvention]
        raise ValueError(f"'week_convention' in savings must be one of: {valid}")

    return SavingsConfig(week_convention=convention)
