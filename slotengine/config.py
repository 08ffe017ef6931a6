"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, field_validator

from .domain.clock import DEFAULT_TIMEZONE
from .domain.slot_generator import DEFAULT_SLOT_INTERVAL, SlotGenerator
from .services.next_available import DEFAULT_HORIZON_DAYS
from .services.recalculation import DEFAULT_BATCH_CONCURRENCY


class EngineConfig(BaseModel):
    """Engine configuration."""
    timezone: str = DEFAULT_TIMEZONE
    slot_interval_minutes: Optional[int] = DEFAULT_SLOT_INTERVAL  # None = back-to-back slots
    horizon_days: int = DEFAULT_HORIZON_DAYS
    batch_concurrency: int = DEFAULT_BATCH_CONCURRENCY
    data_file: Optional[Path] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("slot_interval_minutes")
    @classmethod
    def validate_slot_interval(cls, value: Optional[int]) -> Optional[int]:
        """Ensure the slot interval is positive when set."""
        if value is not None and value <= 0:
            raise ValueError("slot_interval_minutes must be greater than zero")
        return value

    @field_validator("horizon_days", "batch_concurrency")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value

    def build_slot_generator(self) -> SlotGenerator:
        return SlotGenerator(interval_minutes=self.slot_interval_minutes, timezone=self.timezone)

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "EngineConfig":
        """
        Load configuration from YAML file.

        A relative ``data_file`` is resolved against the config file's folder.

        Args:
            config_path: Path to the YAML config file

        Returns:
            EngineConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)
        if config.data_file is not None and not config.data_file.is_absolute():
            config.data_file = config_path.parent / config.data_file
        return config


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
