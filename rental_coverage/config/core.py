"""Master configuration class composing all sub-configurations.

Contains the top-level ``Config`` class that aggregates the reconciliation
thresholds, output and logging settings, with loading, saving and override
capabilities.
"""

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field
import yaml

from .reconciliation import AlertConfig, DraftConfig, GapConfig
from .reporting import LoggingConfig, OutputConfig


DEFAULT_CONFIG_FILE = Path(__file__).parent.parent / "data" / "reconciliation.yaml"


def _merge_sections(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``base`` with ``updates`` applied, descending into nested sections."""
    merged = dict(base)
    for key, value in updates.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _merge_sections(current, value)
        else:
            merged[key] = value
    return merged


class Config(BaseModel):
    """Complete configuration of the reconciliation engine.

    All sub-configs have defaults, so ``Config()`` reproduces the back
    office's standard rules.

    Examples:
        Minimal usage::

            config = Config()

        Override specific thresholds::

            config = Config().override({"alerts.expiry_lookahead_days": 45})

        From a YAML file::

            config = Config.from_yaml(Path("reconciliation.yaml"))
    """

    gaps: GapConfig = Field(default_factory=GapConfig)
    alerts: AlertConfig = Field(default_factory=AlertConfig)
    drafts: DraftConfig = Field(default_factory=DraftConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # ------------------------------------------------------------------ #
    #  Factory methods
    # ------------------------------------------------------------------ #

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file.

        Returns:
            Config object with validated parameters.

        Raises:
            FileNotFoundError: If config file doesn't exist.
            ValidationError: If configuration is invalid.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        # Remove private anchors if present
        data = {k: v for k, v in data.items() if not k.startswith("_")}

        return cls(**data)

    @classmethod
    def load_default(cls) -> "Config":
        """Load the configuration shipped with the package."""
        return cls.from_yaml(DEFAULT_CONFIG_FILE)

    @classmethod
    def from_dict(cls, data: dict, base_config: Optional["Config"] = None) -> "Config":
        """Create config from dictionary, optionally overriding base config.

        Args:
            data: Dictionary with configuration parameters.
            base_config: Optional base configuration to override.

        Returns:
            Config object with validated parameters.
        """
        if base_config is None:
            return cls(**data)

        config_dict = base_config.model_dump()
        merged = _merge_sections(config_dict, data)
        return cls(**merged)

    def override(self, overrides: Dict[str, Any]) -> "Config":
        """Create a new config with overridden parameters.

        Accepts a dictionary with dot-notation keys to override nested
        configuration values.

        Args:
            overrides: Dictionary mapping dot-notation paths to values.
                Example: ``{"gaps.long_gap_days": 21}``

        Returns:
            New Config object with overrides applied.

        Raises:
            ValueError: If a path references an unknown config section or field.
        """
        override_dict: Dict[str, Any] = {}
        for key, value in overrides.items():
            parts = key.split(".")
            self._validate_override_path(key, parts)
            current = override_dict
            for part in parts[:-1]:
                current = current.setdefault(part, {})
            current[parts[-1]] = value

        return Config.from_dict(override_dict, base_config=self)

    def _validate_override_path(self, key: str, parts: list) -> None:
        """Validate that a dot-notation path refers to valid config fields.

        Raises:
            ValueError: If any segment of the path is not a recognised field.
        """
        fields = type(self).model_fields
        section = parts[0]
        if section not in fields:
            valid = ", ".join(sorted(fields.keys()))
            raise ValueError(
                f"Invalid config path '{key}': '{section}' is not a valid "
                f"config section. Valid sections: {valid}"
            )

        if len(parts) >= 2:
            annotation = fields[section].annotation
            if (
                annotation is not None
                and hasattr(annotation, "model_fields")
                and parts[1] not in annotation.model_fields
            ):
                valid = ", ".join(sorted(annotation.model_fields.keys()))
                raise ValueError(
                    f"Invalid config path '{key}': '{parts[1]}' is not a valid "
                    f"field in '{section}'. Valid fields: {valid}"
                )

    # ------------------------------------------------------------------ #
    #  Serialization
    # ------------------------------------------------------------------ #

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file.

        Args:
            path: Path where to save the configuration.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                self.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False
            )

    # ------------------------------------------------------------------ #
    #  Logging
    # ------------------------------------------------------------------ #

    def setup_logging(self) -> None:
        """Configure the ``rental_coverage`` logger from the logging settings.

        Sets up handlers for console and/or file output.
        """
        if not self.logging.enabled:
            return

        import logging
        import sys

        logger = logging.getLogger("rental_coverage")
        logger.setLevel(getattr(logging, self.logging.level))
        logger.handlers.clear()

        formatter = logging.Formatter(self.logging.format)

        if self.logging.console_output:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

        if self.logging.log_file:
            log_path = self.output.output_path / self.logging.log_file
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
