"""
Configuration management for depth refinement
"""

from pathlib import Path
from typing import Any, Callable, Optional
import logging

DEFAULTS = {
    'BILATERAL_SIGMA': '1.0',
    'BILATERAL_KERNEL_SIZE': '2',
    'MEDIAN_SIZE': '0',
    'WORKERS': '1',
    'PROGRESS_INTERVAL': '2.0',
    'LOG_LEVEL': 'INFO'
}
_TRUE_STRINGS = ('true', '1', 'yes', 'on')
_FALSE_STRINGS = ('false', '0', 'no', 'off')

class RefineConfig:
    """Loads and manages refinement configuration from environment files."""

    def __init__(self, env_file: str = "configs/refine.env"):
        self.env_file = Path(env_file)
        self.config = {}
        self.logger = logging.getLogger('RefineConfig')

        self._load_defaults()
        if self.env_file.exists():
            self._load_env_file()
        else:
            self.logger.warning(f"Environment file not found: {env_file}")

    def _load_env_file(self):
        """Load configuration from .env file on top of the defaults."""
        try:
            with open(self.env_file, 'r') as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith('#') and '=' in line:
                        key, value = line.split('=', 1)
                        self.config[key.strip()] = value.strip()

            self.logger.info(f"Loaded configuration from {self.env_file}")

        except OSError as e:
            self.logger.error(f"Failed to load environment file: {e}")
            self._load_defaults()

    def _load_defaults(self):
        """Load default configuration values."""
        self.config = dict(DEFAULTS)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self.config.get(key, default)

    def _get_typed(self, key: str, parse: Callable[[str], Any], default: Any) -> Any:
        """Parse a setting, falling back to default when it is unset or malformed."""
        value = self.config.get(key)
        if value is None or value == '':
            return default
        try:
            return parse(value)
        except (ValueError, TypeError):
            self.logger.warning(f"Invalid value for {key}: {value!r}, using {default!r}")
            return default

    def get_int(self, key: str, default: int = 0) -> int:
        return self._get_typed(key, int, default)

    def get_float(self, key: str, default: float = 0.0) -> float:
        return self._get_typed(key, float, default)

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Accepts true/false, 1/0, yes/no and on/off in any case."""
        def parse(value):
            text = value.lower()
            if text in _TRUE_STRINGS:
                return True
            if text in _FALSE_STRINGS:
                return False
            raise ValueError(value)
        return self._get_typed(key, parse, default)

    def get_path(self, key: str, default: Optional[str] = None) -> Optional[Path]:
        """Get a directory or file setting; None when neither it nor default is set."""
        value = self.config.get(key) or default
        return Path(value) if value else None

    def get_log_level(self, key: str = 'LOG_LEVEL', default: int = logging.INFO) -> int:
        """Resolve a level name such as DEBUG or WARNING to its logging constant."""
        def parse(value):
            level = logging.getLevelName(value.upper())
            if not isinstance(level, int):
                raise ValueError(value)
            return level
        return self._get_typed(key, parse, default)
