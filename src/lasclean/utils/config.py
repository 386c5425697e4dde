# src/lasclean/utils/config.py
from __future__ import annotations

from dataclasses import fields, is_dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

import yaml

from lasclean.config.defaults import default_options
from lasclean.config.schema import (
    BaselineConfig,
    DenoiseConfig,
    DespikeConfig,
    MnemonicConfig,
    ParseOptions,
    ProcessingOptions,
    ValidationConfig,
)

_SECTIONS: Dict[str, Any] = {
    "denoise": DenoiseConfig,
    "despike": DespikeConfig,
    "baseline": BaselineConfig,
    "validation": ValidationConfig,
    "mnemonics": MnemonicConfig,
    "parse": ParseOptions,
}


def load_yaml(path: Path) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")
    obj = yaml.safe_load(p.read_text(encoding="utf-8"))
    return obj if isinstance(obj, dict) else {}


def deep_get(d: Dict[str, Any], key: str, default: Any = None) -> Any:
    cur: Any = d
    for part in key.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return default
        cur = cur[part]
    return cur


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = deep_merge(out[k], v)  # type: ignore[arg-type]
        else:
            out[k] = v
    return out


def as_plain_dict(x: Any) -> Any:
    if is_dataclass(x) and not isinstance(x, type):
        return {f.name: as_plain_dict(getattr(x, f.name)) for f in fields(x)}
    if isinstance(x, dict):
        return {k: as_plain_dict(v) for k, v in x.items()}
    if isinstance(x, (list, tuple)):
        return [as_plain_dict(v) for v in x]
    if isinstance(x, Enum):
        return x.value
    return x


# =============================================================================
# dict -> ProcessingOptions
# =============================================================================

def _parse_range(v: Any) -> Tuple[float, float]:
    if isinstance(v, Mapping):
        return float(v["min"]), float(v["max"])
    lo, hi = v
    return float(lo), float(hi)


def _build_section(cls: Any, d: Dict[str, Any]) -> Any:
    """
    Build one section dataclass from its merged plain dict; unknown keys are
    ignored.
    """
    names = {f.name for f in fields(cls)}
    kwargs = {k: v for k, v in d.items() if k in names}
    if "physical_ranges" in kwargs:
        ranges: Dict[str, Tuple[float, float]] = {}
        for mn, rng in (kwargs["physical_ranges"] or {}).items():
            ranges[str(mn).strip().upper()] = _parse_range(rng)
        kwargs["physical_ranges"] = ranges
    if "custom_mappings" in kwargs:
        kwargs["custom_mappings"] = {str(k): str(v) for k, v in (kwargs["custom_mappings"] or {}).items()}
    return cls(**kwargs)


def options_from_dict(d: Dict[str, Any], *, base: ProcessingOptions | None = None) -> ProcessingOptions:
    """
    Overlay a nested dict (YAML layout) onto `base` (default_options() when
    omitted). Only sections present in `d` are rebuilt.
    """
    opts = base or default_options()
    d = d if isinstance(d, dict) else {}
    merged = deep_merge(as_plain_dict(opts), d)
    updates: Dict[str, Any] = {}
    for name, cls in _SECTIONS.items():
        if isinstance(d.get(name), dict):
            updates[name] = _build_section(cls, merged[name])
    gate = deep_get(merged, "quality_gate")
    if gate is not None:
        updates["quality_gate"] = float(gate)
    return replace(opts, **updates)


def load_options(path: Path) -> ProcessingOptions:
    """
    YAML -> ProcessingOptions merged onto the defaults, e.g.

        denoise:
          window_size: 9
        validation:
          physical_ranges:
            GR: [0, 250]
    """
    return options_from_dict(load_yaml(path))
