"""
Settings for the optimization toolkit.

Values come from, lowest to highest precedence:
- Built-in defaults
- A YAML file (--config, $UBUNTU_OPTIMIZE_CONFIG or ~/.config/ubuntu-optimize/config.yaml)
- UBUNTU_OPTIMIZE_* environment variables
- Command line flags (applied by main)
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

logger = logging.getLogger('ubuntu_optimize.config')

CONFIG_ENV = 'UBUNTU_OPTIMIZE_CONFIG'
DEFAULT_CONFIG = Path('~/.config/ubuntu-optimize/config.yaml')

TRUE_VALUES = ('1', 'true', 'yes', 'on')


class ConfigError(Exception):
    """Raised when the settings file cannot be read or parsed."""


@dataclass
class Settings:
    """Tunables shared by every maintenance module."""
    home: Path = field(default_factory=Path.home)
    root: Path = Path('/')
    log_dir: Optional[Path] = None
    backup_dir: Optional[Path] = None

    auto_yes: bool = False
    verbose: bool = False
    quiet: bool = False

    # Temp and log cleanup
    tmp_max_age_days: int = 1
    var_tmp_max_age_days: int = 7
    log_max_age_days: int = 30
    system_log_limit_mb: int = 10
    large_log_mb: int = 50
    log_truncate_size: str = '10M'
    journal_max_use: str = '100M'
    journal_retention: str = '1week'
    cache_preserve: List[str] = field(
        default_factory=lambda: ['fontconfig', 'mesa_shader_cache', 'nvidia']
    )

    # Memory
    swap_threshold_mb: int = 100
    swap_headroom_mb: int = 200
    preload_min_ram_gb: int = 2

    disk_warn_percent: int = 90
    command_timeout: int = 3600
    settle_seconds: float = 1.0
    reboot_delay: int = 10

    def __post_init__(self):
        self.home = Path(self.home).expanduser()
        self.root = Path(self.root)
        if self.log_dir is None:
            self.log_dir = self.home / '.ubuntu-optimize-logs'
        if self.backup_dir is None:
            self.backup_dir = self.home / '.ubuntu-optimize-backups'
        self.log_dir = Path(self.log_dir).expanduser()
        self.backup_dir = Path(self.backup_dir).expanduser()

    def with_flags(self, **flags: Any) -> 'Settings':
        """Return a copy with the non-None flags applied."""
        changes = {k: v for k, v in flags.items() if v is not None}
        return replace(self, **changes)


def _coerce(name: str, value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in TRUE_VALUES
        return bool(value)
    if isinstance(default, int):
        if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
            raise ConfigError(f"{name} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{name} must be an integer, got {value!r}")
    if isinstance(default, float):
        if isinstance(value, bool):
            raise ConfigError(f"{name} must be a number, got {value!r}")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{name} must be a number, got {value!r}")
    if isinstance(default, list):
        if not isinstance(value, list):
            raise ConfigError(f"{name} must be a list, got {value!r}")
        return [str(v) for v in value]
    if name in ('home', 'root', 'log_dir', 'backup_dir'):
        return Path(str(value)).expanduser()
    return str(value)


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding='utf-8'))
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def _resolve_config_path(path: Optional[Path], env: Mapping[str, str]) -> Optional[Path]:
    if path is not None:
        return Path(path).expanduser()
    if env.get(CONFIG_ENV):
        return Path(env[CONFIG_ENV]).expanduser()
    default = DEFAULT_CONFIG.expanduser()
    return default if default.exists() else None


def load_settings(
    path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None
) -> Settings:
    """
    Build Settings from defaults, an optional YAML file and the environment.

    Args:
        path: Explicit config file; must exist when given
        env: Environment mapping (defaults to os.environ)

    Returns:
        Populated Settings

    Raises:
        ConfigError: The file is unreadable, not YAML, or has bad values
    """
    env = os.environ if env is None else env
    defaults = Settings()
    known = {f.name: getattr(defaults, f.name) for f in fields(Settings)}
    values: Dict[str, Any] = {}

    config_path = _resolve_config_path(path, env)
    if config_path is not None:
        for key, value in _read_yaml(config_path).items():
            key = str(key).replace('-', '_')
            if key not in known:
                logger.warning(f"Ignoring unknown setting '{key}' in {config_path}")
                continue
            default = known[key] if known[key] is not None else ''
            values[key] = _coerce(key, value, default)
        logger.debug(f"Loaded settings from {config_path}")

    for key in ('auto_yes', 'verbose', 'quiet'):
        raw = env.get(f"UBUNTU_OPTIMIZE_{key.upper()}")
        if raw is not None:
            values[key] = raw.strip().lower() in TRUE_VALUES

    return Settings(**values)
