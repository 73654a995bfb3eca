from __future__ import annotations

from pathlib import Path

import pytest

from docnorm.config import EnhancementOptions, load_config


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config_reads_sections(tmp_path):
    path = _write(
        tmp_path,
        """
input:
  path: scans
output:
  path: out
enhancement:
  auto_rotate: false
  intensity: high
vision:
  init_timeout_seconds: 15
runtime:
  max_concurrent_documents: 2
""",
    )

    config = load_config(path)

    assert config.input.path == Path("scans")
    assert config.output.base_path == Path("out")
    assert config.output.summary_csv == Path("out") / "summary.csv"
    assert config.enhancement == EnhancementOptions(auto_rotate=False, intensity="high")
    assert config.vision.init_timeout_seconds == 15.0
    assert config.runtime.max_concurrent_documents == 2


def test_defaults_enable_every_stage(tmp_path):
    config = load_config(_write(tmp_path, "input: {}\noutput: {}\n"))

    assert config.enhancement == EnhancementOptions(
        auto_correct_perspective=True,
        auto_rotate=True,
        enhance_quality=True,
        remove_noise=True,
        intensity="medium",
    )
    assert config.vision.init_timeout_seconds == 30.0


def test_missing_section_is_rejected(tmp_path):
    with pytest.raises(KeyError):
        load_config(_write(tmp_path, "input:\n  path: x\n"))


def test_non_mapping_section_is_rejected(tmp_path):
    with pytest.raises(TypeError):
        load_config(_write(tmp_path, "input: {}\noutput: []\n"))


def test_unknown_intensity_is_rejected(tmp_path):
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, "input: {}\noutput: {}\nenhancement:\n  intensity: extreme\n"))


@pytest.mark.parametrize("timeout", [0, 45])
def test_init_timeout_is_bounded(tmp_path, timeout):
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, f"input: {{}}\noutput: {{}}\nvision:\n  init_timeout_seconds: {timeout}\n"))
