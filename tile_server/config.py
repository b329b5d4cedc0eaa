from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from tile_server.errors import ConfigError


DEFAULT_CONFIG_PATH = "config/params.yaml"

_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "raster": {"path": "data/raster.tif", "fallback_crs": None},
    "tiles": {
        "size": 256,
        "cache_capacity": 1000,
        "high_zoom_threshold": 14,
        "oversize_ratio": 0.5,
        "fallback_divisor": 10,
    },
    "preview": {"max_size": 1024},
    "enhance": {
        "gamma": 1.1,
        "normalize": True,
        "brightness": 1.1,
        "saturation": 1.2,
        "compress_level": 9,
    },
    "server": {"host": "0.0.0.0", "port": 3000, "cors_origins": ["*"]},
    "logging": {"level": "INFO"},
}


@dataclass(frozen=True)
class EnhanceConfig:
    gamma: float = 1.1
    normalize: bool = True
    brightness: float = 1.1
    saturation: float = 1.2
    compress_level: int = 9


@dataclass(frozen=True)
class ServerConfig:
    """Flattened view of config/params.yaml."""
    raster_path: str = "data/raster.tif"
    fallback_crs: Optional[str] = None
    tile_size: int = 256
    cache_capacity: int = 1000
    high_zoom_threshold: int = 14
    oversize_ratio: float = 0.5
    fallback_divisor: int = 10
    preview_max_size: int = 1024
    enhance: EnhanceConfig = field(default_factory=EnhanceConfig)
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        for name in ("tile_size", "cache_capacity", "fallback_divisor", "preview_max_size"):
            if int(getattr(self, name)) <= 0:
                raise ConfigError(f"{name} must be > 0")
        if not (0.0 < float(self.oversize_ratio) <= 1.0):
            raise ConfigError("oversize_ratio must be in (0, 1]")
        if self.high_zoom_threshold < 0:
            raise ConfigError("high_zoom_threshold must be >= 0")
        if self.enhance.gamma <= 0:
            raise ConfigError("enhance.gamma must be > 0")
        if not (0 <= self.enhance.compress_level <= 9):
            raise ConfigError("enhance.compress_level must be in [0, 9]")

    @classmethod
    def from_dict(cls, P: Dict[str, Any]) -> "ServerConfig":
        merged = _merge(P)
        r, t, e, s = merged["raster"], merged["tiles"], merged["enhance"], merged["server"]
        try:
            return cls(
                raster_path=str(r["path"]),
                fallback_crs=r.get("fallback_crs") or None,
                tile_size=int(t["size"]),
                cache_capacity=int(t["cache_capacity"]),
                high_zoom_threshold=int(t["high_zoom_threshold"]),
                oversize_ratio=float(t["oversize_ratio"]),
                fallback_divisor=int(t["fallback_divisor"]),
                preview_max_size=int(merged["preview"]["max_size"]),
                enhance=EnhanceConfig(
                    gamma=float(e["gamma"]),
                    normalize=bool(e["normalize"]),
                    brightness=float(e["brightness"]),
                    saturation=float(e["saturation"]),
                    compress_level=int(e["compress_level"]),
                ),
                host=str(s["host"]),
                port=int(s["port"]),
                cors_origins=[str(o) for o in s["cors_origins"]],
                log_level=str(merged["logging"]["level"]),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid configuration value: {e}") from e


def _merge(P: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Overlay user sections on the defaults, one section at a time."""
    merged = copy.deepcopy(_DEFAULTS)
    for section, values in (P or {}).items():
        if section not in merged:
            continue  # unknown sections are ignored
        if not isinstance(values, dict):
            raise ConfigError(f"config section '{section}' must be a mapping")
        merged[section].update(values)
    return merged


def load_config(path: Optional[str] = None) -> ServerConfig:
    """
    Load YAML config. Path precedence: explicit arg, env TILE_SERVER_CONFIG,
    config/params.yaml. A missing file yields the built-in defaults.
    """
    path = path or os.environ.get("TILE_SERVER_CONFIG") or DEFAULT_CONFIG_PATH
    if not Path(path).exists():
        return ServerConfig.from_dict({})
    try:
        with open(path, "r") as f:
            P = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse {path}: {e}") from e
    if not isinstance(P, dict):
        raise ConfigError(f"{path} must contain a mapping at top level")
    return ServerConfig.from_dict(P)
