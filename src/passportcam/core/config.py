from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml

from passportcam.core.errors import ConfigError

CONFIG_ENV_VAR = "PASSPORTCAM_CONFIG"


@dataclass(frozen=True)
class PassportPhotoConfig:
    """
    Rule set for one passport standard.

    head_height_min_percent / head_height_max_percent:
        Face box height as a percentage of image height.
    eye_height_min_percent / eye_height_max_percent:
        Eye line position measured as a percentage from the image bottom.
    background_variance_threshold:
        Maximum grayscale standard deviation of the corner samples.
    center_tolerance:
        Maximum horizontal face offset as a fraction of image width.
    max_tilt_ratio:
        Maximum eye tilt ratio (vertical / horizontal eye distance).
    background_sample_size:
        Side of the square sampled in each corner, in pixels. Fixed size, so
        results depend on the capture resolution.
    output_width / output_height / output_dpi / jpeg_quality:
        Finalized export raster.
    """
    country: str = "United States"
    head_height_min_percent: float = 50.0
    head_height_max_percent: float = 69.0
    eye_height_min_percent: float = 56.0
    eye_height_max_percent: float = 69.0
    background_variance_threshold: float = 30.0
    center_tolerance: float = 0.15
    max_tilt_ratio: float = 0.10
    background_sample_size: int = 50
    output_width: int = 600
    output_height: int = 600
    output_dpi: int = 300
    jpeg_quality: int = 95

    def __post_init__(self) -> None:
        if self.head_height_min_percent > self.head_height_max_percent:
            raise ConfigError("head_height_min_percent must not exceed head_height_max_percent")
        if self.eye_height_min_percent > self.eye_height_max_percent:
            raise ConfigError("eye_height_min_percent must not exceed eye_height_max_percent")
        if self.output_width <= 0 or self.output_height <= 0:
            raise ConfigError("output size must be positive")
        if self.background_sample_size <= 0:
            raise ConfigError("background_sample_size must be positive")
        if not (1 <= self.jpeg_quality <= 100):
            raise ConfigError("jpeg_quality must be in 1..100")


US_PASSPORT_CONFIG = PassportPhotoConfig()


@dataclass(frozen=True)
class GuidanceThresholds:
    """
    Live coaching thresholds, as fractions of the frame size.

    The closer/back limits sit outside the ideal band (0.8x / 1.2x) so the
    instruction does not flip near the band edges.
    """
    ideal_height_min: float = 0.50
    ideal_height_max: float = 0.60
    closer_factor: float = 0.8
    back_factor: float = 1.2
    max_horizontal_offset: float = 0.15
    max_vertical_offset: float = 0.15
    vertical_target: float = 0.45
    max_tilt_ratio: float = 0.10
    optimal_tilt_ratio: float = 0.05


@dataclass(frozen=True)
class SchedulerConfig:
    throttle_ms: float = 250.0
    detection_scale: float = 0.25
    tick_interval_ms: int = 16

    def __post_init__(self) -> None:
        if not (0.0 < self.detection_scale <= 1.0):
            raise ConfigError(f"detection_scale must be in (0, 1], got {self.detection_scale}")
        if self.throttle_ms < 0:
            raise ConfigError("throttle_ms must be >= 0")


@dataclass(frozen=True)
class AppConfig:
    rules: PassportPhotoConfig = field(default_factory=PassportPhotoConfig)
    guidance: GuidanceThresholds = field(default_factory=GuidanceThresholds)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


_SECTIONS = {
    "rules": PassportPhotoConfig,
    "guidance": GuidanceThresholds,
    "scheduler": SchedulerConfig,
}


def _apply_section(default: Any, values: Any, section: str) -> Any:
    if values is None:
        return default
    if not isinstance(values, Mapping):
        raise ConfigError(f"Section '{section}' must be a mapping")
    known = {f.name for f in fields(default)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"Unknown keys in section '{section}': {', '.join(unknown)}")
    try:
        return replace(default, **values)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in section '{section}': {e}") from e


def config_from_dict(data: Optional[Mapping[str, Any]]) -> AppConfig:
    """Build an AppConfig from a parsed mapping, starting from the defaults."""
    data = data or {}
    if not isinstance(data, Mapping):
        raise ConfigError("Configuration root must be a mapping")
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ConfigError(f"Unknown configuration sections: {', '.join(unknown)}")

    base = AppConfig()
    return AppConfig(
        rules=_apply_section(base.rules, data.get("rules"), "rules"),
        guidance=_apply_section(base.guidance, data.get("guidance"), "guidance"),
        scheduler=_apply_section(base.scheduler, data.get("scheduler"), "scheduler"),
    )


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Load configuration from a YAML file.

    With no path, PASSPORTCAM_CONFIG is consulted; if that is unset too the
    built-in defaults (US passport rules) are returned.
    """
    if path is None:
        env = os.environ.get(CONFIG_ENV_VAR)
        if not env:
            return AppConfig()
        path = env

    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")

    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {p}: {e}") from e

    return config_from_dict(data)
