"""Configuration loader for Friplass."""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

DEFAULT_CONFIG_PATH = "./config/config.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "environment": "development",
    "storage": {
        "listings_path": "./data/listings.json",
        "uploads_dir": "./data/uploads",
        "uploads_url_prefix": "/uploads",
    },
    "admin": {
        "migrate_secret": "",
    },
    "server": {
        "host": "0.0.0.0",
        "port": 5000,
        "debug": False,
    },
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file and environment variables.

    Values from the file are merged over the built-in defaults, then
    environment variables override both.

    Args:
        config_path: Path to the YAML configuration file. When omitted,
                     ./config/config.yaml is used if it exists.

    Returns:
        Dictionary containing merged configuration

    Raises:
        FileNotFoundError: If an explicitly given config file doesn't exist
        ValueError: If config is invalid
    """
    # Load environment variables from .env file
    load_dotenv()

    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path is not None:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {config_path}\n"
                f"Copy config/config.example.yaml to config/config.yaml and customize it."
            )
    else:
        config_file = Path(get_env("FRIPLASS_CONFIG", DEFAULT_CONFIG_PATH))

    if config_file.exists():
        with open(config_file, "r") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file must hold a mapping: {config_file}")
        _merge_into(config, loaded)

    _apply_env_overrides(config)
    _validate_config(config)

    return config


def _merge_into(base: Dict[str, Any], overrides: Dict[str, Any]) -> None:
    """Recursively merge overrides into base, in place."""
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge_into(base[key], value)
        else:
            base[key] = value


def _apply_env_overrides(config: Dict[str, Any]) -> None:
    storage = config["storage"]
    storage["listings_path"] = get_env("FRIPLASS_LISTINGS_PATH", storage["listings_path"])
    storage["uploads_dir"] = get_env("FRIPLASS_UPLOADS_DIR", storage["uploads_dir"])

    admin = config["admin"]
    admin["migrate_secret"] = get_env("MIGRATE_SECRET", admin.get("migrate_secret") or "")

    config["environment"] = get_env("FRIPLASS_ENV", config.get("environment"))

    port = get_env("PORT")
    if port:
        config["server"]["port"] = port


def _validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration structure."""
    required_sections = ["storage", "admin", "server"]
    for section in required_sections:
        if not isinstance(config.get(section), dict):
            raise ValueError(f"Missing required config section: {section}")

    storage = config["storage"]
    for key in ("listings_path", "uploads_dir"):
        if not storage.get(key):
            raise ValueError(f"storage.{key} must be set")

    prefix = str(storage.get("uploads_url_prefix") or "")
    if not prefix.startswith("/"):
        raise ValueError(f"storage.uploads_url_prefix must start with '/', got {prefix!r}")

    try:
        config["server"]["port"] = int(config["server"].get("port", 5000))
    except (TypeError, ValueError):
        raise ValueError(f"server.port must be an integer, got {config['server'].get('port')!r}")

    if config.get("environment") not in ("development", "production", "test"):
        raise ValueError(
            f"environment must be development, production or test, got {config.get('environment')!r}"
        )


def is_production(config: Dict[str, Any]) -> bool:
    return config.get("environment") == "production"


def get_env(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    """
    Read an environment variable, trimmed.

    A variable that is set but blank (``MIGRATE_SECRET=`` left in a copied
    .env file) counts as unset, so it does not mask the configured value.

    Args:
        key: Environment variable name
        default: Returned when the variable is unset or blank
        required: If True, raise when there is no value at all

    Returns:
        The trimmed value, or default

    Raises:
        ValueError: If required and neither the variable nor a default is set
    """
    value = (os.getenv(key) or "").strip()
    if not value:
        value = default
    if required and not value:
        raise ValueError(f"Required environment variable not set: {key}")
    return value
