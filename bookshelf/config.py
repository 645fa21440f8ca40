# bookshelf/config.py
"""
Application settings.

Settings are layered: ``appsettings.yaml`` in the working directory, then
``appsettings.{environment}.yaml``, then an explicit file, then overrides
passed in code, and finally environment variables. Later layers win.
Missing files are skipped, so a bare environment-variable setup works.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


BOOK_STORE_CHOICES = ("sqlserver", "datastore")

# Environment variable -> path inside the settings tree.
ENV_OVERRIDES = {
    "BOOKSHELF_DATA__BOOKSTORE": ("data", "book_store"),
    "BOOKSHELF_DATA__SQLSERVER__CONNECTIONSTRING": ("data", "sql_server", "connection_string"),
    "GOOGLE_PROJECT_ID": ("google_project_id",),
    "BOOKSHELF_LOG_LEVEL": ("log_level",),
}


class SqlServerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    connection_string: Optional[str] = None


class DataConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    book_store: Optional[str] = None
    sql_server: SqlServerConfig = SqlServerConfig()


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    data: DataConfig = DataConfig()
    google_project_id: Optional[str] = None
    log_level: str = Field(default="INFO")
    page_size: int = 10

    @field_validator("page_size")
    @classmethod
    def _positive_page_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("page_size must be positive")
        return value


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    return data or {}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _apply_env(config_data: Dict[str, Any]) -> Dict[str, Any]:
    for var, path in ENV_OVERRIDES.items():
        value = os.getenv(var)
        if not value:
            continue
        node = config_data
        for part in path[:-1]:
            node = node.setdefault(part, {})
        node[path[-1]] = value
    return config_data


def load_config(
    config_path: Optional[Path] = None,
    environment: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    base_dir: Optional[Path] = None,
) -> AppConfig:
    base_dir = base_dir or Path.cwd()
    environment = environment or os.getenv("BOOKSHELF_ENVIRONMENT")

    config_data: Dict[str, Any] = {}
    config_data = _deep_merge(config_data, _read_yaml(base_dir / "appsettings.yaml"))

    if environment:
        config_data = _deep_merge(config_data, _read_yaml(base_dir / f"appsettings.{environment}.yaml"))

    if config_path:
        config_data = _deep_merge(config_data, _read_yaml(config_path))

    if overrides:
        config_data = _deep_merge(config_data, overrides)

    config_data = _apply_env(config_data)
    return AppConfig.model_validate(config_data)
