from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from lasclean.config import DEFAULT_PHYSICAL_RANGES, default_options, qc_only_options
from lasclean.config.schema import DenoiseConfig
from lasclean.utils.config import as_plain_dict, deep_get, deep_merge, load_options, options_from_dict


def test_defaults() -> None:
    o = default_options()
    assert o.denoise.method == "savitzky_golay"
    assert o.denoise.window_size == 7
    assert o.denoise.polynomial_order == 2
    assert o.denoise.strength == 0.5
    assert o.denoise.preserve_spikes
    assert o.despike.method == "hampel"
    assert o.despike.threshold == 3.0
    assert o.despike.replacement_method == "pchip"
    assert not o.baseline.enabled
    assert o.validation.physical_ranges["NPHI"] == (-0.15, 1.0)
    assert o.mnemonics.standard == "api"
    assert o.quality_gate == 50.0

    q = qc_only_options()
    assert not q.denoise.enabled and not q.despike.enabled and not q.baseline.enabled


def test_load_options_from_yaml(tmp_path: Path) -> None:
    p = tmp_path / "opts.yaml"
    p.write_text(
        "\n".join(
            [
                "denoise:",
                "  window_size: 9",
                "  method: gaussian",
                "despike:",
                "  enabled: false",
                "validation:",
                "  physical_ranges:",
                "    gr: [0, 250]",
                "    DT: {min: 40, max: 200}",
                "mnemonics:",
                "  standard: custom",
                "  custom_mappings:",
                "    GRX: GR",
                "quality_gate: 60",
                "unknown_section:",
                "  foo: 1",
            ]
        ),
        encoding="utf-8",
    )
    o = load_options(p)
    assert o.denoise.window_size == 9
    assert o.denoise.method == "gaussian"
    assert o.denoise.polynomial_order == 2
    assert not o.despike.enabled
    assert o.validation.physical_ranges["GR"] == (0.0, 250.0)
    assert o.validation.physical_ranges["DT"] == (40.0, 200.0)
    # untouched defaults survive the merge
    assert o.validation.physical_ranges["RHOB"] == DEFAULT_PHYSICAL_RANGES["RHOB"]
    assert o.mnemonics.custom_mappings == {"GRX": "GR"}
    assert o.quality_gate == 60.0


def test_load_options_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_options(tmp_path / "missing.yaml")


def test_options_from_dict_ignores_unknown_keys() -> None:
    o = options_from_dict({"denoise": {"strength": 0.8, "bogus": 1}, "parse": {"max_bytes": 1024}})
    assert o.denoise.strength == 0.8
    assert o.parse.max_bytes == 1024
    # defaults are never mutated
    assert default_options().denoise.strength == 0.5


def test_plain_dict_helpers() -> None:
    d = as_plain_dict(default_options())
    assert d["denoise"]["window_size"] == 7
    assert d["validation"]["physical_ranges"]["GR"] == [0.0, 300.0]
    assert deep_get(d, "despike.method") == "hampel"
    assert deep_get(d, "despike.nope", "x") == "x"
    merged = deep_merge({"a": {"b": 1, "c": 2}}, {"a": {"c": 3}, "d": 4})
    assert merged == {"a": {"b": 1, "c": 3}, "d": 4}


def test_options_from_dict_merges_onto_given_base() -> None:
    base = replace(default_options(), denoise=DenoiseConfig(window_size=11, method="wavelet"), quality_gate=65.0)
    o = options_from_dict({"denoise": {"strength": 0.9}, "validation": {"physical_ranges": {"gr": [5, 200]}}}, base=base)
    assert o.denoise.window_size == 11
    assert o.denoise.method == "wavelet"
    assert o.denoise.strength == 0.9
    assert o.quality_gate == 65.0
    assert o.validation.physical_ranges["GR"] == (5.0, 200.0)
    assert o.validation.physical_ranges["NPHI"] == (-0.15, 1.0)
    assert "gr" not in o.validation.physical_ranges
