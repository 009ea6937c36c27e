"""venuecal.core.config_loader

Lightweight config loader for venuecal.

- Prefers YAML (PyYAML) if available, falls back to JSON.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .timezone_utils import DEFAULT_DISPLAY_TIMEZONE

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY_PRECEDENCE = ("game_day", "poker", "karaoke")

# (announcements, events) shown per day for each view
DEFAULT_VIEW_CAPS: dict[str, tuple[int, int]] = {
    "month": (2, 2),
    "week": (5, 10),
    "day": (5, 10),
}


@dataclass
class Config:
    """Typed configuration for venuecal.

    Fields:
        display_timezone: IANA zone all calendar content is rendered in
        data_file: path of the JSON data file backing the event store
        max_occurrences_per_event: expansion guard per event and window
        view_caps: per-view (announcements, events) limits for a single day
        category_precedence: event categories in display priority order
        log_level: logging level name
    """

    display_timezone: str = DEFAULT_DISPLAY_TIMEZONE
    data_file: str | None = None
    max_occurrences_per_event: int = 250
    view_caps: dict[str, tuple[int, int]] = field(
        default_factory=lambda: dict(DEFAULT_VIEW_CAPS)
    )
    category_precedence: tuple[str, ...] = DEFAULT_CATEGORY_PRECEDENCE
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced to int, view caps must be pairs of
        non-negative ints (``month_caps: [2, 2]``), and bad values fall back to
        their defaults with a warning.
        """
        if data is None:
            data = {}

        def _coerce_int(key: str, default: int, minimum: int = 0) -> int:
            raw = data.get(key, default)
            try:
                value = int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default
            if value < minimum:
                logger.warning("Config %s=%d below minimum; coercing to %d", key, value, minimum)
                return minimum
            return value

        view_caps = dict(DEFAULT_VIEW_CAPS)
        for view in DEFAULT_VIEW_CAPS:
            raw_caps = data.get(f"{view}_caps")
            if raw_caps is None:
                continue
            try:
                announcements, events = (int(v) for v in raw_caps)
                if announcements < 0 or events < 0:
                    raise ValueError("caps must be non-negative")
            except (TypeError, ValueError):
                logger.warning("Config %s_caps=%r is not a pair of ints; ignoring", view, raw_caps)
                continue
            view_caps[view] = (announcements, events)

        precedence_raw = data.get("category_precedence", DEFAULT_CATEGORY_PRECEDENCE)
        if isinstance(precedence_raw, str):
            precedence_raw = [p.strip() for p in precedence_raw.split(",")]
        if not isinstance(precedence_raw, (list, tuple)):
            logger.warning("Config `category_precedence` is not a list; using defaults")
            precedence_raw = DEFAULT_CATEGORY_PRECEDENCE
        precedence = tuple(str(p).strip().lower() for p in precedence_raw if str(p).strip())

        data_file = data.get("data_file")
        log_level = data.get("log_level", "INFO")

        return cls(
            display_timezone=str(data.get("display_timezone") or DEFAULT_DISPLAY_TIMEZONE),
            data_file=str(data_file) if data_file else None,
            max_occurrences_per_event=_coerce_int("max_occurrences_per_event", 250, minimum=1),
            view_caps=view_caps,
            category_precedence=precedence,
            log_level=str(log_level).upper() if log_level is not None else "INFO",
        )


def _load_yaml_or_json(path: Path) -> Any:
    """
    Load a mapping from a YAML or JSON file.

    JSON files are parsed with the json module; everything else goes through
    PyYAML, which is imported lazily to keep package import light.
    """
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)

    import yaml

    loaded = yaml.safe_load(text)
    # safe_load returns None for empty files
    return {} if loaded is None else loaded


def load_config(path: str | None = None, overrides: dict[str, Any] | None = None) -> Config:
    """Load configuration from a YAML/JSON file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to ./venuecal.yaml.
        overrides: Optional mapping (usually from the environment) applied on
            top of the file values.

    Behavior:
    - If file is missing: defaults (plus overrides) are used.
    - If file exists but top-level is not a mapping: raises ValueError.
    """
    p = Path(path) if path else Path.cwd() / "venuecal.yaml"
    logger.debug("Attempting to load config from %s", p)

    raw: Any = {}
    if p.exists():
        raw = _load_yaml_or_json(p)
        if not isinstance(raw, dict):
            logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
            raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
        logger.info("Loaded configuration from %s", p)
    else:
        logger.info("Config file %s not found; using defaults", p)

    merged = {**raw, **(overrides or {})}
    cfg = Config.from_dict(merged)
    logger.debug("Configuration values: %s", cfg)
    return cfg
