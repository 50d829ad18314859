# File: src/smartpark/config.py
"""
Configuration for the SmartPark core

Pydantic models mirror the YAML layout one-to-one:

    database:
      url: sqlite:///smartpark.db     # or memory://
      echo: false
    pricing:
      hourly_rates: {TWO_WHEELER: 10, FOUR_WHEELER: 20, HEAVY_VEHICLE: 40}
      minimum_charge: 5
    events:
      broker: memory                  # memory | redis | none
      redis_url: redis://localhost:6379
      topic: smartpark.events
    logging:
      level: INFO
      log_dir: logs

Environment variables override the file: SMARTPARK_DATABASE_URL,
SMARTPARK_REDIS_URL, SMARTPARK_LOG_LEVEL; SMARTPARK_CONFIG names the file.
"""

from typing import Any, Dict, Mapping, Optional, Union
from pathlib import Path
from decimal import Decimal
from enum import Enum
import logging
import os

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain.models import VehicleType
from .domain.strategies import DEFAULT_HOURLY_RATES, DEFAULT_MINIMUM_CHARGE


IN_MEMORY_DATABASE_URL = "memory://"

ENV_CONFIG_FILE = "SMARTPARK_CONFIG"
ENV_DATABASE_URL = "SMARTPARK_DATABASE_URL"
ENV_REDIS_URL = "SMARTPARK_REDIS_URL"
ENV_LOG_LEVEL = "SMARTPARK_LOG_LEVEL"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EventBroker(str, Enum):
    NONE = "none"
    MEMORY = "memory"
    REDIS = "redis"


class DatabaseSettings(BaseModel):
    """Which store backs the units of work"""
    model_config = ConfigDict(extra="forbid")

    url: str = Field(IN_MEMORY_DATABASE_URL, description="SQLAlchemy URL, or memory:// for the in-memory store")
    echo: bool = Field(False, description="Log every SQL statement")

    @property
    def is_in_memory(self) -> bool:
        return self.url == IN_MEMORY_DATABASE_URL


class PricingSettings(BaseModel):
    """Hourly rates per vehicle class and the short-stay minimum charge"""
    model_config = ConfigDict(extra="forbid")

    hourly_rates: Dict[VehicleType, Decimal] = Field(default_factory=lambda: dict(DEFAULT_HOURLY_RATES))
    minimum_charge: Decimal = Field(DEFAULT_MINIMUM_CHARGE, ge=0)

    @field_validator('hourly_rates')
    @classmethod
    def validate_rates(cls, v: Dict[VehicleType, Decimal]) -> Dict[VehicleType, Decimal]:
        if any(rate <= 0 for rate in v.values()):
            raise ValueError("Hourly rates must be positive")

        merged = {**DEFAULT_HOURLY_RATES, **v}
        ordered = [merged[vehicle_type] for vehicle_type in VehicleType]
        if any(larger <= smaller for smaller, larger in zip(ordered, ordered[1:])):
            raise ValueError("Hourly rates must be strictly increasing by vehicle class")
        return v


class EventSettings(BaseModel):
    """Where committed domain events are forwarded"""
    model_config = ConfigDict(extra="forbid")

    broker: EventBroker = Field(EventBroker.MEMORY)
    redis_url: str = Field("redis://localhost:6379")
    topic: str = Field("smartpark.events", min_length=1)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: LogLevel = Field(LogLevel.INFO)
    log_dir: Optional[str] = Field(None, description="Directory for smartpark.log; stdout only when unset")

    @field_validator('level', mode='before')
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class ParkingConfig(BaseModel):
    """Complete SmartPark configuration"""
    model_config = ConfigDict(extra="forbid")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    pricing: PricingSettings = Field(default_factory=PricingSettings)
    events: EventSettings = Field(default_factory=EventSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    # Runtime state (not serialized)
    loaded_from: Optional[str] = Field(default=None, exclude=True)


def _apply_env_overrides(data: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    overrides = {
        ENV_DATABASE_URL: ("database", "url"),
        ENV_REDIS_URL: ("events", "redis_url"),
        ENV_LOG_LEVEL: ("logging", "level"),
    }
    for variable, (section, key) in overrides.items():
        value = environ.get(variable)
        if value:
            section_data = dict(data.get(section) or {})
            section_data[key] = value
            data[section] = section_data
    return data


def load_config(
    config_file: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None
) -> ParkingConfig:
    """
    Load configuration from YAML (if any) and the environment

    Raises:
        FileNotFoundError: an explicitly named config file does not exist
        ValueError: the file is not a YAML mapping
        pydantic.ValidationError: invalid settings
    """
    environ = os.environ if environ is None else environ
    config_file = config_file or environ.get(ENV_CONFIG_FILE)

    data: Dict[str, Any] = {}
    if config_file:
        config_path = Path(config_file)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            try:
                yaml_data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML syntax in {config_path}: {e}") from e

        if yaml_data is not None and not isinstance(yaml_data, dict):
            raise ValueError("Configuration file must contain a YAML dictionary")
        data = yaml_data or {}

    config = ParkingConfig.model_validate(_apply_env_overrides(data, environ))
    if config_file:
        config.loaded_from = str(config_file)
        logging.getLogger(__name__).info(f"Loaded configuration from {config_file}")
    return config
