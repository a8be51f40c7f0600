from typing import Optional

from urbanscope.cli.config import CLIConfig, get_config

_config: Optional[CLIConfig] = None


def set_global_config(config: CLIConfig) -> None:
    global _config
    _config = config


def get_global_config() -> CLIConfig:
    """Config set by the root callback, or env/defaults when none was set."""
    return _config or get_config()
