"""
Runtime configuration.

Settings come from an optional YAML file, overlaid by environment variables
(a ``.env`` file in the working directory is loaded first). Environment
variables always win over the file.

Expected YAML format:
```yaml
database:
  host: localhost
  port: 5432
  name: bi_sync_data
  user: pipeline
  pool_min: 2
  pool_max: 10
  pool_timeout: 30
store:
  mode: live            # or "simulated"
  table: pim_product
  timeout_seconds: 15
upload:
  max_bytes: 10485760
  fallback_encoding: cp1252
text_generation:
  url: http://localhost:11434
```
"""

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from product_ingest.utils.validation import ValidationError, sanitize_sql_identifier

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

# env var -> (yaml section, yaml key)
ENV_KEYS: dict[str, tuple[str, str]] = {
    "DB_HOST": ("database", "host"),
    "DB_PORT": ("database", "port"),
    "DB_NAME": ("database", "name"),
    "DB_USER": ("database", "user"),
    "DB_PASSWORD": ("database", "password"),
    "DB_POOL_MIN": ("database", "pool_min"),
    "DB_POOL_MAX": ("database", "pool_max"),
    "DB_POOL_TIMEOUT": ("database", "pool_timeout"),
    "STORE_MODE": ("store", "mode"),
    "PRODUCT_TABLE": ("store", "table"),
    "STORE_TIMEOUT_SECONDS": ("store", "timeout_seconds"),
    "MAX_UPLOAD_BYTES": ("upload", "max_bytes"),
    "FALLBACK_ENCODING": ("upload", "fallback_encoding"),
    "ALIASES_FILE": ("upload", "aliases_file"),
    "TEXTGEN_URL": ("text_generation", "url"),
    "TEXTGEN_TIMEOUT_SECONDS": ("text_generation", "timeout_seconds"),
}


class DatabaseSettings(BaseModel):
    host: str = "localhost"
    port: int = 5432
    name: str = "bi_sync_data"
    user: str = "pipeline"
    password: str | None = None
    pool_min: int = Field(2, ge=0)
    pool_max: int = Field(10, ge=1)
    pool_timeout: float = Field(30.0, gt=0)


class StoreSettings(BaseModel):
    mode: Literal["simulated", "live"] = "simulated"
    table: str = "pim_product"
    timeout_seconds: float = Field(15.0, gt=0)

    @field_validator("table")
    @classmethod
    def check_table_identifier(cls, v: str) -> str:
        try:
            return sanitize_sql_identifier(v, field_name="table")
        except ValidationError as e:
            raise ValueError(str(e)) from e


class UploadSettings(BaseModel):
    max_bytes: int = Field(MAX_UPLOAD_BYTES, gt=0)
    fallback_encoding: str = "cp1252"
    aliases_file: str | None = None


class TextGenerationSettings(BaseModel):
    url: str = "http://localhost:11434"
    timeout_seconds: float = Field(5.0, gt=0)


class IngestSettings(BaseModel):
    """Complete runtime configuration for one process."""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    text_generation: TextGenerationSettings = Field(default_factory=TextGenerationSettings)


def _read_yaml(config_path: str | Path) -> dict[str, Any]:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path) as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError("Configuration file must contain a mapping at the top level")
    return config


def load_settings(
    config_path: str | Path | None = None,
    environ: dict[str, str] | None = None,
    use_dotenv: bool = True,
) -> IngestSettings:
    """
    Build settings from YAML and the environment.

    Args:
        config_path: Optional YAML file (defaults to env var INGEST_CONFIG)
        environ: Environment mapping (defaults to os.environ)
        use_dotenv: Whether to load a .env file first

    Returns:
        Validated IngestSettings

    Raises:
        FileNotFoundError: If an explicit config file does not exist
        pydantic.ValidationError: If a value is invalid
    """
    if use_dotenv and environ is None:
        load_dotenv()
    env = os.environ if environ is None else environ

    config_path = config_path or env.get("INGEST_CONFIG")
    raw: dict[str, Any] = _read_yaml(config_path) if config_path else {}

    for env_name, (section, key) in ENV_KEYS.items():
        value = env.get(env_name)
        if value is not None and value != "":
            raw.setdefault(section, {})
            raw[section][key] = value

    return IngestSettings.model_validate(raw)
