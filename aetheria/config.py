"""App configuration (model connection, retry and pacing knobs).

Resolution order: built-in defaults, then {data_dir}/config.json, then
environment variables (AETHERIA_PROVIDER_URL, AETHERIA_API_KEY,
AETHERIA_MODEL), which the launcher loads from .env.
"""

import json
import os
from pathlib import Path
from typing import Any

_CONFIG_DEFAULTS: dict[str, Any] = {
    "provider_url": "http://localhost:8080",
    "api_key": "",
    "model": "",
    "timeout": 120.0,
    "max_retries": 3,
    "retry_delay": 2.0,
    "sim_cooldown": 2.0,
    "max_tool_batches": 16,
}

_ENV_OVERRIDES = {
    "provider_url": "AETHERIA_PROVIDER_URL",
    "api_key": "AETHERIA_API_KEY",
    "model": "AETHERIA_MODEL",
}


def _config_path(data_dir: Path) -> Path:
    return data_dir / "config.json"


def _read_stored(data_dir: Path) -> dict[str, Any]:
    path = _config_path(data_dir)
    if not path.is_file():
        return {}
    stored = json.loads(path.read_text())
    return {k: v for k, v in stored.items() if k in _CONFIG_DEFAULTS}


def get_config(data_dir: Path) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values and env."""
    config = dict(_CONFIG_DEFAULTS)
    config.update(_read_stored(data_dir))
    for key, env_var in _ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            config[key] = value
    return config


def update_config(data_dir: Path, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge known fields into the stored config and persist. Returns full config."""
    stored = _read_stored(data_dir)
    stored.update({k: v for k, v in fields.items() if k in _CONFIG_DEFAULTS})
    data_dir.mkdir(parents=True, exist_ok=True)
    _config_path(data_dir).write_text(json.dumps(stored, indent=2))
    return get_config(data_dir)
