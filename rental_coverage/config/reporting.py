"""Output and logging configuration.

Controls where exported reconciliation tables are written and how the
package logger is set up.
"""

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field


class OutputConfig(BaseModel):
    """Where and how exported reconciliation tables are saved."""

    output_directory: str = Field(default="outputs", description="Directory for exported tables")
    file_format: Literal["csv", "json"] = Field(default="csv", description="Export file format")
    currency: str = Field(default="TND", description="Currency label used in exported tables")

    @property
    def output_path(self) -> Path:
        """Get output directory as Path object."""
        return Path(self.output_directory)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Controls logging behavior including level, output destinations,
    and message formatting.
    """

    enabled: bool = Field(default=True, description="Enable logging")
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    log_file: Optional[str] = Field(
        default=None, description="Log file path (None=no file logging)"
    )
    console_output: bool = Field(default=True, description="Log to console")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
