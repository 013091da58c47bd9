"""Configuration loader."""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from ..errors import ConfigError
from .models import ConfigModel

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "localpulse" / "config.yaml"

# env var -> (section, field); section None means top level
ENV_OVERRIDES = {
    "DATABASE_URL": ("postgres", "dsn"),
    "PGSSLMODE": ("postgres", "sslmode"),
    "LOOKBACK_HOURS": ("ingest", "lookback_hours"),
    "MAX_RECORDS": ("ingest", "max_records"),
    "MIN_KEYWORD_LEN": ("ingest", "min_keyword_len"),
    "REQUEST_TIMEOUT": ("ingest", "request_timeout"),
    "REQUEST_DELAY": ("ingest", "request_delay"),
    "GDELT_DOC_API": ("ingest", "search_api"),
    "MIN_GROUP_SIZE": ("synthesis", "min_group_size"),
    "STORY_WINDOW_HOURS": ("synthesis", "window_hours"),
    "AI_ENDPOINT": ("llm", "endpoint"),
    "AI_PROVIDER": ("llm", "provider"),
    "AI_MODEL": ("llm", "model"),
    "TARGET_TABLE": (None, "target_table"),
    "SOURCES_PATH": (None, "catalog_path"),
    "FIELD_MAPPING_PATH": (None, "mapping_path"),
}


class Config:
    """Configuration manager."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        """Initialize config manager."""
        self.explicit_path = config_path is not None
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config: Optional[ConfigModel] = None

    @property
    def config(self) -> ConfigModel:
        """Get loaded config."""
        if self._config is None:
            self._config = load_config(self.config_path, required=self.explicit_path)
        return self._config

    @property
    def catalog_path(self) -> Path:
        """Source catalog path; relative paths resolve against the config file."""
        path = Path(self.config.catalog_path).expanduser()
        if not path.is_absolute():
            path = self.config_path.parent / path
        return path

    @property
    def mapping_path(self) -> Optional[Path]:
        """Field mapping path, if one is configured."""
        if not self.config.mapping_path:
            return None
        path = Path(self.config.mapping_path).expanduser()
        if not path.is_absolute():
            path = self.config_path.parent / path
        return path

    def get_db_config(self) -> Dict[str, Any]:
        """Get database configuration dict."""
        db_config = self.config.postgres.model_dump()

        # Handle password from environment if specified
        if db_config.get("password_env"):
            password = os.environ.get(db_config["password_env"])
            if password:
                db_config["password"] = password

        return db_config

    def get_llm_config(self) -> Dict[str, Any]:
        """Get LLM configuration dict."""
        llm_config = self.config.llm.model_dump()

        # Handle API key from environment if specified
        if llm_config.get("api_key_env"):
            api_key = os.environ.get(llm_config["api_key_env"])
            if api_key:
                llm_config["api_key"] = api_key

        return llm_config


def apply_env_overrides(data: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Overlay env-style settings onto raw config data."""
    environ = os.environ if environ is None else environ
    for env_name, (section, field) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None or value == "":
            continue
        if section is None:
            data[field] = value
        else:
            target = data.setdefault(section, {}) or {}
            target[field] = value
            data[section] = target
    return data


def load_config(
    config_path: Path,
    required: bool = True,
    environ: Optional[Dict[str, str]] = None,
) -> ConfigModel:
    """Load configuration from YAML file plus environment overrides."""
    config_data: Dict[str, Any] = {}

    if config_path.exists():
        try:
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file {config_path}: {e}")
        if not isinstance(config_data, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")
    elif required:
        raise ConfigError(f"Config file not found: {config_path}")

    config_data = apply_env_overrides(config_data, environ)

    try:
        return ConfigModel(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}")


def save_config(config: ConfigModel, config_path: Path) -> None:
    """Save configuration to YAML file."""
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        yaml.dump(config.model_dump(exclude_none=True), f, default_flow_style=False, sort_keys=False)
