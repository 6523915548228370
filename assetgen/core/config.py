from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict


DEFAULT_CONFIG: Dict[str, Any] = {
    "variant": "v0",
    "builder": {"max_depth": 10, "workers": 1},
    "defaults": {"color": "#FF9900"},
    "sub_assets": {"enabled": True, "min_fields": 2},
    "identity": {"fuzzy": True, "fuzzy_threshold": 0.8},
    "emit": {"clean": True},
}


def load_config(path: Path) -> Dict[str, Any]:
    data = load_data(path)
    if not isinstance(data, dict):
        raise ValueError("Config must be a mapping")
    if "assetgen" in data and isinstance(data["assetgen"], dict):
        data = data["assetgen"]
    return data


def normalize_config(config: Dict[str, Any] | None = None) -> Dict[str, Any]:
    merged = json.loads(json.dumps(DEFAULT_CONFIG))
    return _deep_merge(merged, config or {})


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_data(path: Path) -> Any:
    if path.suffix in {".yaml", ".yml"}:
        import yaml

        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle)
    if path.suffix == ".toml":
        try:
            import tomllib
        except ImportError:  # pragma: no cover - python <3.11
            import tomli as tomllib  # type: ignore

        with path.open("rb") as handle:
            return tomllib.load(handle)
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)
