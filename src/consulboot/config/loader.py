# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/consulboot/config/loader.py

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from consulboot.errors import MissingRequiredArgument
from .models import BootstrapSettings

log = logging.getLogger("consulboot")


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        elif isinstance(value, dict):
            nested = _deep_merge({}, value)
            if nested:
                base[key] = nested
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return yaml.safe_load(expanded) or {}


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "settings"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def load_settings(
    path: Optional[str | Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> BootstrapSettings:
    """
    Resolve BootstrapSettings from, lowest priority first:

      1. model defaults
      2. an optional YAML settings file (``${ENV_VAR}`` placeholders expanded)
      3. non-empty command-line overrides

    Raises MissingRequiredArgument when the result does not validate.
    """
    data: dict = {}
    if path:
        path = Path(path)
        if not path.is_file():
            raise MissingRequiredArgument(f"Settings file {path} does not exist")
        log.debug(f"Loading settings from {path}")
        data = _load_yaml(path)

    if overrides:
        _deep_merge(data, overrides)

    try:
        return BootstrapSettings.model_validate(data)
    except ValidationError as exc:
        raise MissingRequiredArgument(_describe(exc)) from exc
