"""Config file loading supporting JSON, YAML, and TOML.

Format is always inferred from the file extension:
  .json        → JSON
  .yaml / .yml → YAML  (requires pyyaml)
  .toml        → TOML  (stdlib tomllib)
"""
from __future__ import annotations

import json
import tomllib
from pathlib import Path
from typing import Any

_YAML_EXTS = {".yaml", ".yml"}
_TOML_EXTS = {".toml"}

_CONFIG_NAMES = ["config.json", "config.yaml", "config.yml", "config.toml"]

# Config keys whose values are treated as credentials and must never appear in
# log output.  Matched as substrings against lower-cased key names.
_SENSITIVE_KEY_PATTERNS = ("token", "secret", "password")


def find_config(directory: Path) -> Path | None:
    """Return the first existing config file found in *directory*."""
    for name in _CONFIG_NAMES:
        p = directory / name
        if p.is_file():
            return p
    return None


def load_config(path: Path) -> dict[str, Any]:
    """Load a config file; format is inferred from the file extension."""
    ext = path.suffix.lower()
    if ext in _YAML_EXTS:
        import yaml  # pyyaml
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    if ext in _TOML_EXTS:
        with open(path, "rb") as f:
            return tomllib.load(f)
    # Default: JSON
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def collect_sensitive(obj, found: set[str] | None = None) -> frozenset[str]:
    """Recursively extract credential string values from a loaded config dict."""
    if found is None:
        found = set()
    if isinstance(obj, dict):
        for k, v in obj.items():
            if isinstance(v, str) and v and any(p in str(k).lower() for p in _SENSITIVE_KEY_PATTERNS):
                found.add(v)
            else:
                collect_sensitive(v, found)
    elif isinstance(obj, list):
        for item in obj:
            collect_sensitive(item, found)
    return frozenset(found)
