"""
Configuration module for the InfluxDB reconciler.

Loads configuration from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class InfluxDBConfig:
    """Endpoint and credentials of the InfluxDB server."""

    endpoint: str = "http://localhost:8086"
    token: str = field(default="", repr=False)  # Never log token
    timeout: int = 30  # seconds per HTTP call

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        token = os.getenv("INFLUXDB_TOKEN", "")
        if not token:
            raise ValueError(
                "INFLUXDB_TOKEN environment variable must be set. "
                "InfluxDB API token cannot be empty."
            )

        return cls(
            endpoint=os.getenv("INFLUXDB_ENDPOINT", "http://localhost:8086"),
            token=token,
            timeout=int(os.getenv("INFLUXDB_TIMEOUT", "30")),
        )


@dataclass
class ControllerConfig:
    """Controller reconciliation configuration."""

    max_concurrent_reconciles: int = 5
    # Passes per kind before converge() gives up on a record
    max_passes: int = 5

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            max_concurrent_reconciles=int(os.getenv("MAX_CONCURRENT_RECONCILES", "5")),
            max_passes=int(os.getenv("MAX_RECONCILE_PASSES", "5")),
        )


@dataclass
class Config:
    """Main configuration object."""

    influxdb: InfluxDBConfig
    controller: ControllerConfig
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            influxdb=InfluxDBConfig.from_env(),
            controller=ControllerConfig.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            influxdb=InfluxDBConfig(),
            controller=ControllerConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
