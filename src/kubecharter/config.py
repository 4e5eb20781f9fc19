#!/usr/bin/env python3
"""
KUBECHARTER CONFIG
------------------
Engine settings: chart name, output location, classifier thresholds and
worker sizing. Settings live in an optional YAML file; every key has a
default so a missing file is a valid configuration.

Author: KubeCharter Team
Date: 2026-10-17
"""

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from ruamel.yaml import YAML, YAMLError

from kubecharter.core.errors import ConfigError
from kubecharter.values.classifier import ValueClassifier
from kubecharter.values.store import DirectoryWriter, MemoryWriter

logger = logging.getLogger("kubecharter.config")


@dataclass
class EngineConfig:
    chart_name: str = "chart"
    output_dir: Optional[str] = None
    size_threshold: int = 1024
    structured_size_threshold: int = 512
    line_threshold: int = 20
    binary_ratio: float = 0.3
    workers: int = 4
    write_attempts: int = 2

    def validate(self):
        if not isinstance(self.chart_name, str) or not self.chart_name.strip():
            raise ConfigError("chart_name must be a non-empty string")
        if self.output_dir is not None and not isinstance(self.output_dir, str):
            raise ConfigError("output_dir must be a path string", {"output_dir": self.output_dir})

        for name in ("size_threshold", "structured_size_threshold", "line_threshold",
                     "workers", "write_attempts"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer", {name: value})
        for name in ("workers", "write_attempts"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be at least 1", {name: getattr(self, name)})
        for name in ("size_threshold", "structured_size_threshold", "line_threshold"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative", {name: getattr(self, name)})

        if isinstance(self.binary_ratio, bool) or not isinstance(self.binary_ratio, (int, float)) \
                or not 0 <= self.binary_ratio <= 1:
            raise ConfigError("binary_ratio must be a number between 0 and 1",
                              {"binary_ratio": self.binary_ratio})
        return self

    def classifier(self) -> ValueClassifier:
        return ValueClassifier(
            size_threshold=self.size_threshold,
            structured_size_threshold=self.structured_size_threshold,
            line_threshold=self.line_threshold,
            binary_ratio=float(self.binary_ratio),
        )

    def writer(self):
        """Files land on disk when an output directory is set, in memory otherwise."""
        if self.output_dir:
            return DirectoryWriter(self.output_dir)
        return MemoryWriter()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        known = {f.name for f in fields(cls)}
        for key in sorted(set(data) - known):
            logger.warning(f"Ignoring unknown config key '{key}'")
        return cls(**{k: v for k, v in data.items() if k in known}).validate()


def load_config(path: Optional[str] = None) -> EngineConfig:
    """Reads an EngineConfig from YAML. No path or a missing file gives the defaults."""
    if path is None:
        return EngineConfig()

    config_path = Path(path)
    if not config_path.exists():
        logger.info(f"No config at {config_path}; using defaults")
        return EngineConfig()

    try:
        data = YAML(typ="safe", pure=True).load(config_path.read_text(encoding="utf-8-sig"))
    except (OSError, YAMLError) as e:
        raise ConfigError(f"Unable to read config {config_path}", {"error": str(e)})

    if data is None:
        return EngineConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Config {config_path} must be a mapping", {"type": type(data).__name__})
    return EngineConfig.from_dict(data)
