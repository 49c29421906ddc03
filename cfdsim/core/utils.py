"""Utility helpers (timestamps, logging setup, config loading)."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load YAML configuration from config.yaml or fall back to the sample."""
    config_path = Path(path) if path is not None else CONFIG_DIR / "config.yaml"
    if not config_path.exists():
        logging.warning("%s not found, falling back to sample configuration.", config_path.name)
        config_path = CONFIG_DIR / "config.sample.yaml"
    with config_path.open("r", encoding="utf-8") as fh:
        loaded = yaml.safe_load(fh) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")
    return loaded


def setup_logging(config: Optional[Dict[str, Any]] = None) -> None:
    """Configure root logging from the `logging` config section."""
    level_name = str(((config or {}).get("logging") or {}).get("level", "INFO") or "INFO").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {level_name}")
    logging.basicConfig(level=level, format=LOG_FORMAT)


def utc_now() -> datetime:
    """Return the current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def sanitize_for_json(value: Any) -> Any:
    """Replace NaN/inf floats with None so payloads survive `allow_nan=False`.

    A runaway random walk can overflow the price to inf; Starlette would then
    fail the whole response.
    """
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {str(k): sanitize_for_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_for_json(v) for v in value]
    return value
