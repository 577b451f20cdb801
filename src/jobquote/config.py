"""Configuration management for the job quote pricing engine."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


logger = logging.getLogger(__name__)


class PricingDefaultsConfig(BaseModel):
    """Engine-wide defaults used when a record leaves a value unset."""

    currency: str = Field(
        default="USD",
        description="Currency label attached to every breakdown",
    )
    default_gross_margin_percent: float = Field(
        default=70.0,
        ge=0.0,
        le=100.0,
        description="Gross margin target of the neutral job type",
    )
    default_efficiency_percent: float = Field(
        default=100.0,
        ge=0.0,
        le=100.0,
        description="Efficiency of the neutral job type",
    )
    efficiency_floor_percent: float = Field(
        default=0.01,
        gt=0.0,
        le=100.0,
        description="Smallest efficiency used when inflating labor minutes",
    )
    rounding_places: int = Field(
        default=2,
        ge=0,
        le=6,
        description="Decimal places for money at line granularity",
    )


class LoggingConfig(BaseModel):
    """Logging configuration settings."""

    level: str = Field(
        default="INFO",
        description="Logging level",
    )
    file: Optional[str] = Field(
        default=None,
        description="Log file path",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    console_output: bool = Field(
        default=True,
        description="Enable console output",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Level must be one of {valid_levels}")
        return v.upper()


class ReportingConfig(BaseModel):
    """Report rendering options."""

    show_lines: bool = Field(
        default=True,
        description="Include the per-line table in reports",
    )
    show_tech_cost: bool = Field(
        default=False,
        description="Include the tech cost (required revenue) card in reports",
    )


class Config(BaseModel):
    """Main configuration model."""

    pricing: PricingDefaultsConfig = Field(default_factory=PricingDefaultsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Dictionary containing configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.debug(f"Loading configuration from {config_path}")

    with open(config_path, "r") as f:
        config_data = yaml.safe_load(f) or {}

    config = Config(**config_data)

    return config.model_dump()


def save_config(config_data: Dict[str, Any], config_path: Path) -> None:
    """Save configuration to YAML file.

    Args:
        config_data: Configuration dictionary
        config_path: Path to save configuration file
    """
    config = Config(**config_data)

    config_path.parent.mkdir(parents=True, exist_ok=True)

    logger.debug(f"Saving configuration to {config_path}")

    with open(config_path, "w") as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)

    logger.info(f"Configuration saved to {config_path}")


def load_pricing_defaults(
    config_path: Optional[Path] = None,
) -> PricingDefaultsConfig:
    """Load the pricing defaults section.

    Searches ``config_path`` first, then ``config/config.yaml`` relative to
    the current working directory and the repository root.  When nothing is
    found the built-in defaults are returned.

    Args:
        config_path: Optional explicit path to a config YAML file.

    Returns:
        PricingDefaultsConfig populated from the file (or defaults).
    """
    search_paths = []
    if config_path:
        search_paths.append(config_path)

    search_paths.append(Path("config/config.yaml"))
    # src/jobquote -> repo root -> config/
    _pkg_root = Path(__file__).parent.parent.parent
    search_paths.append(_pkg_root / "config" / "config.yaml")

    for path in search_paths:
        if path.exists():
            logger.debug(f"Loading pricing defaults from {path}")
            try:
                with open(path, "r") as f:
                    data = yaml.safe_load(f) or {}
                return PricingDefaultsConfig(**data.get("pricing", {}))
            except Exception as exc:
                logger.warning(f"Failed to load pricing defaults from {path}: {exc}")

    logger.warning("No config.yaml found; using built-in pricing defaults")
    return PricingDefaultsConfig()
