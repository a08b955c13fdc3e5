"""Config loading: YAML file, optional local override file, .env."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from loguru import logger


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return base with override layered on top; nested sections merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = value
    return merged


def local_override_path(path: Path) -> Path:
    """config.yaml -> config.local.yaml"""
    return path.with_name(f"{path.stem}.local{path.suffix}")


def load_config(path: str | Path) -> dict[str, Any]:
    """Parse one YAML file with safe_load. Missing or empty files give {}."""
    path = Path(path)
    if not path.is_file():
        logger.info("Config file not found: {} (using environment and defaults)", path)
        return {}

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        logger.error("Cannot parse {}: {}", path, exc)
        raise

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring {}: top level must be a mapping, got {}", path, type(data).__name__)
        return {}
    return data


def load_config_with_env(path: str | Path) -> dict[str, Any]:
    """Load .env into the process environment, then the config file and its local override.

    Env overrides (PORT, ADMIN_SECRET, WEBHOOK_URL, ...) are applied later by Config.
    """
    from dotenv import load_dotenv

    load_dotenv()
    path = Path(path)
    data = load_config(path)
    local = local_override_path(path)
    if local.is_file():
        logger.info("Applying local overrides from {}", local)
        data = merge_config(data, load_config(local))
    return data
