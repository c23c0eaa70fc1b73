"""Configuration management using Pydantic v2 models.

Sub-modules:
    core: Master Config class that composes all sub-configs.
    reconciliation: Gap, alert and draft thresholds.
    reporting: Output and logging configs.

Examples:
    Quick start with defaults::

        from rental_coverage.config import Config

        config = Config()

    Loading the packaged defaults::

        config = Config.load_default()

Note:
    All monetary values are in the rental's billing currency.
    Durations are whole calendar days.
"""

from .core import DEFAULT_CONFIG_FILE, Config
from .reconciliation import AlertConfig, DraftConfig, GapConfig
from .reporting import LoggingConfig, OutputConfig

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "Config",
    "AlertConfig",
    "DraftConfig",
    "GapConfig",
    "LoggingConfig",
    "OutputConfig",
]
