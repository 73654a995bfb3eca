"""Configuration helpers for the document normalizer."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import logging

import yaml

from .vision import DEFAULT_INIT_TIMEOUT

LOGGER = logging.getLogger(__name__)

INTENSITIES = ("low", "medium", "high")
MAX_INIT_TIMEOUT = 30.0


@dataclass(slots=True)
class EnhancementOptions:
    auto_correct_perspective: bool = True
    auto_rotate: bool = True
    enhance_quality: bool = True
    remove_noise: bool = True
    intensity: str = "medium"

    def __post_init__(self) -> None:
        if self.intensity not in INTENSITIES:
            raise ValueError(
                f"intensity must be one of {', '.join(INTENSITIES)}, got '{self.intensity}'"
            )


@dataclass(slots=True)
class InputConfig:
    path: Path = Path("input")


@dataclass(slots=True)
class OutputConfig:
    base_path: Path = Path("output")
    summary_csv: Path = Path("output/summary.csv")


@dataclass(slots=True)
class VisionConfig:
    init_timeout_seconds: float = DEFAULT_INIT_TIMEOUT


@dataclass(slots=True)
class RuntimeConfig:
    max_concurrent_documents: int = 4


@dataclass(slots=True)
class AppConfig:
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    enhancement: EnhancementOptions = field(default_factory=EnhancementOptions)
    vision: VisionConfig = field(default_factory=VisionConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)


def _validate_dict(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    if key not in raw:
        raise KeyError(f"Missing '{key}' section in config.yaml")
    if not isinstance(raw[key], dict):
        raise TypeError(f"Section '{key}' must be a mapping")
    return raw[key]


def _optional_dict(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise TypeError(f"Section '{key}' must be a mapping")
    return value


def load_config(path: Path) -> AppConfig:
    """Load and validate configuration from the YAML file."""
    raw_config = _load_yaml_file(path)

    input_cfg = _validate_dict(raw_config, "input")
    output_cfg = _validate_dict(raw_config, "output")
    enhancement_cfg = _optional_dict(raw_config, "enhancement")
    vision_cfg = _optional_dict(raw_config, "vision")
    runtime_cfg = _optional_dict(raw_config, "runtime")

    base_path = Path(output_cfg.get("path", "output"))
    init_timeout = float(vision_cfg.get("init_timeout_seconds", DEFAULT_INIT_TIMEOUT))
    if not 0 < init_timeout <= MAX_INIT_TIMEOUT:
        raise ValueError(
            f"vision.init_timeout_seconds must be in (0, {MAX_INIT_TIMEOUT:.0f}], got {init_timeout}"
        )
    max_concurrent = int(runtime_cfg.get("max_concurrent_documents", 4))
    if max_concurrent < 1:
        raise ValueError("runtime.max_concurrent_documents must be at least 1")

    config = AppConfig(
        input=InputConfig(path=Path(input_cfg.get("path", "input"))),
        output=OutputConfig(
            base_path=base_path,
            summary_csv=Path(output_cfg.get("summary", base_path / "summary.csv")),
        ),
        enhancement=EnhancementOptions(
            auto_correct_perspective=bool(enhancement_cfg.get("auto_correct_perspective", True)),
            auto_rotate=bool(enhancement_cfg.get("auto_rotate", True)),
            enhance_quality=bool(enhancement_cfg.get("enhance_quality", True)),
            remove_noise=bool(enhancement_cfg.get("remove_noise", True)),
            intensity=str(enhancement_cfg.get("intensity", "medium")),
        ),
        vision=VisionConfig(init_timeout_seconds=init_timeout),
        runtime=RuntimeConfig(max_concurrent_documents=max_concurrent),
    )

    LOGGER.debug("Loaded configuration: %s", config)
    return config


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    LOGGER.debug("Parsing %s", path)
    loaded = yaml.safe_load(text) or {}
    if not isinstance(loaded, dict):
        raise TypeError(f"{path} must contain a mapping at the top level")
    return loaded
