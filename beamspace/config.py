# beamspace/config.py
# Process-wide numeric settings (tolerances, sampling counts, worker count).
from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

# Very fast JSON if present
try:
    import orjson as _fastjson
except ImportError:
    _fastjson = None

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "BEAMSPACE_CONFIG"


@dataclass
class Settings:
    """
    Tolerances and sampling defaults shared by every module.

    tolerance              : model absolute tolerance (parameter and length checks)
    angle_tolerance        : radians, used by cross-section discretisation
    frame_tolerance        : max deviation from orthonormality accepted for a frame
    minimum_segment_length : shortest polyline edge produced by discretisation
    minimum_num_segments   : longest edge is length / minimum_num_segments
    cross_section_samples  : fallback sample count for cross-section planes
    approximate_samples    : arc-length table size for approximate mapping
    transport_substeps     : transport nodes per curve span for RMF computation
    extension_padding      : extra length added when extending for inverse mapping
    workers                : thread count for batch queries (None = executor default)
    """

    tolerance: float = 0.001
    angle_tolerance: float = math.radians(2.5)
    frame_tolerance: float = 1e-6
    minimum_segment_length: float = 30.0
    minimum_num_segments: int = 25
    cross_section_samples: int = 40
    approximate_samples: int = 100
    transport_substeps: int = 16
    extension_padding: float = 1.0
    workers: Optional[int] = None

    def validate(self) -> None:
        if self.tolerance <= 0.0:
            raise ValueError("tolerance must be positive.")
        if self.frame_tolerance <= 0.0:
            raise ValueError("frame_tolerance must be positive.")
        if self.minimum_num_segments < 1:
            raise ValueError("minimum_num_segments must be >= 1.")
        if self.cross_section_samples < 2:
            raise ValueError("cross_section_samples must be >= 2.")
        if self.approximate_samples < 1:
            raise ValueError("approximate_samples must be >= 1.")
        if self.transport_substeps < 1:
            raise ValueError("transport_substeps must be >= 1.")
        if self.workers is not None and self.workers < 1:
            raise ValueError("workers must be None or >= 1.")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Settings":
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in (data or {}).items():
            if key not in known:
                logger.warning("Settings: ignoring unknown key %r.", key)
                continue
            kwargs[key] = value
        s = cls(**kwargs)
        s.validate()
        return s

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_settings = Settings()


def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return _settings


def configure(**overrides: Any) -> Settings:
    """Replace the process-wide settings with a copy carrying `overrides` and return it."""
    global _settings
    updated = replace(_settings, **overrides)
    updated.validate()
    _settings = updated
    logger.debug("Settings updated: %s", overrides)
    return _settings


def _read_json(path: str) -> Any:
    if _fastjson:
        with open(path, "rb") as f:
            return _fastjson.loads(f.read())
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_settings(path: Optional[str] = None, *, apply: bool = True) -> Settings:
    """
    Load settings from a JSON object file.

    `path` defaults to the BEAMSPACE_CONFIG environment variable; with neither set
    the defaults are returned. With apply=True the result becomes the process-wide
    instance.
    """
    global _settings
    path = path or os.environ.get(CONFIG_ENV_VAR)
    if not path:
        s = Settings()
    else:
        data = _read_json(path)
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {path!r} must contain a JSON object.")
        s = Settings.from_mapping(data)
        logger.debug("Loaded settings from %s", path)
    if apply:
        _settings = s
    return s
