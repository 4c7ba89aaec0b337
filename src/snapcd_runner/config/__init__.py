"""Runner settings loading."""

from snapcd_runner.config.loader import ConfigError, load_settings
from snapcd_runner.config.schema import RunnerSettings

__all__ = ["ConfigError", "RunnerSettings", "load_settings"]
