"""
Configuration for employee-sync.

One Settings model composed of named sections. Values come from a YAML
file; DB_* and LOG_LEVEL environment variables (optionally loaded from a
.env file) override the file.
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from employee_sync.core.exceptions import ConfigurationError

DEFAULT_COLUMN_MAPPING = {
    "id": "id",
    "name": "name",
    "age": "age",
    "status": "status",
    "dob": "dob",
}


class DatabaseSettings(BaseModel):
    host: str = "localhost"
    port: int = Field(5432, ge=1, le=65535)
    name: str = "employees"
    user: str = "employee_sync"
    password: str | None = None
    min_pool_size: int = Field(2, ge=1)
    max_pool_size: int = Field(10, ge=1)
    timeout: float = Field(30.0, gt=0)


class IngestSettings(BaseModel):
    """
    Where CSV files are picked up and how their columns map onto Employee.

    Attributes:
        file_folder: Directory swept for input files
        processed_folder: Directory completed files are moved to
        file_name_prefix: Only ``<prefix>*.csv`` files are ingested
        column_mapping: CSV column -> Employee field
        default_status: Status stamped on every ingested record
        preferred_date_format: Date pattern tried before the fallbacks
        delimiter: CSV field separator
    """

    enabled: bool = True
    file_folder: str = "data/ingest"
    processed_folder: str = "data/processed"
    file_name_prefix: str = "employees"
    column_mapping: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_COLUMN_MAPPING))
    default_status: str = "NEW"
    preferred_date_format: str | None = None
    delimiter: str = Field(",", min_length=1, max_length=1)

    @field_validator("column_mapping")
    @classmethod
    def check_column_mapping_not_empty(cls, v):
        if not v:
            raise ValueError("column_mapping must map at least one column")
        return v


class ExtractSettings(BaseModel):
    enabled: bool = True
    file_folder: str = "data/extract"
    file_name_prefix: str = "employees-extract-"
    column_mapping: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_COLUMN_MAPPING))
    ready_to_extract_status: str = "READY"
    extracted_status: str = "EXTRACTED"
    delimiter: str = Field(",", min_length=1, max_length=1)


class PerformanceSettings(BaseModel):
    batch_size: int = Field(1000, ge=1)


class NotificationSettings(BaseModel):
    """Warning thresholds for delta counts. Delivery is not implemented; a warning is logged."""

    enabled: bool = False
    new_employees_threshold: int = Field(100, ge=0)
    updated_employees_threshold: int = Field(50, ge=0)
    deleted_employees_threshold: int = Field(10, ge=0)
    recipients: list[str] = Field(default_factory=list)


class DeltaSettings(BaseModel):
    """
    Delta detection switches.

    Retention knobs are declared for deployments that purge externally;
    nothing in this package deletes batches.
    """

    enabled: bool = True
    max_batches_retention: int = Field(100, ge=1)
    batch_retention_days: int = Field(90, ge=1)
    auto_cleanup_enabled: bool = True
    ignored_fields: set[str] = Field(default_factory=lambda: {"transaction_id", "created_date"})
    detect_new: bool = True
    detect_updated: bool = True
    detect_deleted: bool = True
    detailed_change_logging: bool = True
    performance: PerformanceSettings = Field(default_factory=PerformanceSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseModel):
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    ingest: IngestSettings = Field(default_factory=IngestSettings)
    extract: ExtractSettings = Field(default_factory=ExtractSettings)
    delta: DeltaSettings = Field(default_factory=DeltaSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "DB_HOST": ("database", "host"),
    "DB_PORT": ("database", "port"),
    "DB_NAME": ("database", "name"),
    "DB_USER": ("database", "user"),
    "DB_PASSWORD": ("database", "password"),
    "LOG_LEVEL": ("logging", "level"),
}


class SettingsLoader:
    """
    Loads Settings from a YAML file and the environment.

    Expected YAML format:
    ```yaml
    database:
      host: localhost
      name: employees
    ingest:
      file_folder: /data/in
      column_mapping:
        EmployeeId: id
        FullName: name
        BirthDate: dob
      preferred_date_format: M/d/yyyy
    delta:
      notifications:
        enabled: true
        recipients: [hr-ops@example.com]
    ```
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        env_file: str | Path | None = ".env",
    ):
        """
        Initialize the settings loader.

        Args:
            config_path: YAML file; None uses defaults plus environment
            env: Environment mapping (defaults to os.environ)
            env_file: dotenv file loaded into os.environ when present

        Raises:
            ConfigurationError: If config_path does not exist
        """
        self.config_path = Path(config_path) if config_path else None
        if self.config_path is not None and not self.config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_path}", config_path=str(config_path)
            )
        self._env = env
        self.env_file = Path(env_file) if env_file else None

    def load(self) -> Settings:
        """
        Build Settings from file and environment.

        Raises:
            ConfigurationError: If the YAML is malformed or a value is invalid
        """
        if self._env is None and self.env_file is not None and self.env_file.exists():
            load_dotenv(self.env_file, override=False)
        env = self._env if self._env is not None else os.environ

        raw = self._read_file()
        self._apply_env_overrides(raw, env)

        try:
            return Settings.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(
                "Invalid configuration",
                config_path=str(self.config_path) if self.config_path else None,
                details={"errors": [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()]},
                original_error=e,
            ) from e

    def _read_file(self) -> dict[str, Any]:
        if self.config_path is None:
            return {}

        try:
            with open(self.config_path) as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Malformed YAML: {e}", config_path=str(self.config_path), original_error=e
            ) from e

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigurationError(
                "Configuration file must contain a mapping of sections",
                config_path=str(self.config_path),
            )
        return config

    @staticmethod
    def _apply_env_overrides(raw: dict[str, Any], env: Mapping[str, str]) -> None:
        for variable, (section, key) in ENV_OVERRIDES.items():
            value = env.get(variable)
            if value:
                raw.setdefault(section, {})
                if raw[section] is None:
                    raw[section] = {}
                raw[section][key] = value


def load_settings(config_path: str | Path | None = None) -> Settings:
    return SettingsLoader(config_path).load()
