# src/lasclean/io/export.py
from __future__ import annotations

import io
import json
import math
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict

import lasio
import numpy as np
import pandas as pd

from lasclean.model import LogFile

if TYPE_CHECKING:
    from lasclean.pipeline.result import PipelineResult


# =============================================================================
# DataFrame
# =============================================================================

def to_dataframe(file: LogFile) -> pd.DataFrame:
    """
    Measurement curves as float64 columns indexed by depth (index named after
    the depth curve). Missing values are NaN.
    """
    depth_curve = file.depth_curve
    index = pd.Index(file.depths(), name=depth_curve.mnemonic if depth_curve is not None else "DEPT")
    data = {c.mnemonic: file.column(c.mnemonic) for c in file.measurement_curves()}
    return pd.DataFrame(data, index=index, dtype="float64")


# =============================================================================
# LAS 2.0 text
# =============================================================================

_WELL_ITEMS = (
    ("COMP", "company", "COMPANY"),
    ("WELL", "well", "WELL"),
    ("FLD", "field", "FIELD"),
    ("LOC", "location", "LOCATION"),
    ("SRVC", "service_company", "SERVICE COMPANY"),
    ("DATE", "date", "LOG DATE"),
    ("UWI", "uwi", "UNIQUE WELL ID"),
    ("API", "api", "API NUMBER"),
)


def to_las_text(file: LogFile) -> str:
    """Serialise a LogFile as unwrapped LAS 2.0 through lasio."""
    h = file.header
    las = lasio.LASFile()
    dunit = h.depth_unit or ""

    las.well["NULL"] = lasio.HeaderItem("NULL", value=float(h.null_value), descr="NULL VALUE")
    for mn, attr, descr in _WELL_ITEMS:
        v = getattr(h, attr)
        las.well[mn] = lasio.HeaderItem(mn, value="" if v is None else str(v), descr=descr)
    if h.elevation is not None:
        las.well["ELEV"] = lasio.HeaderItem("ELEV", unit=dunit, value=float(h.elevation), descr="ELEVATION")
    for p in h.parameters:
        las.params[p.mnemonic] = lasio.HeaderItem(p.mnemonic, unit=p.unit, value=p.value, descr=p.description)

    for c in file.curves:
        data = file.depths() if c.is_depth else file.column(c.mnemonic)
        las.append_curve(c.mnemonic, data, unit=c.unit, descr=c.description)

    buf = io.StringIO()
    # lasio recomputes STRT/STOP/STEP from the index curve
    las.write(buf, version=2.0, wrap=False)
    return buf.getvalue()


def write_las(file: LogFile, path: Path) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(to_las_text(file), encoding="utf-8")
    return p


# =============================================================================
# JSON report
# =============================================================================

def _json_safe(x: Any) -> Any:
    if isinstance(x, dict):
        return {str(k): _json_safe(v) for k, v in x.items()}
    if isinstance(x, (list, tuple)):
        return [_json_safe(v) for v in x]
    if isinstance(x, (np.floating, float)):
        f = float(x)
        return f if math.isfinite(f) else None
    if isinstance(x, np.integer):
        return int(x)
    if isinstance(x, np.bool_):
        return bool(x)
    return x


def report_dict(result: "PipelineResult") -> Dict[str, Any]:
    """PipelineResult.to_dict() with NaN/inf mapped to null."""
    return _json_safe(result.to_dict())


def write_report_json(result: "PipelineResult", path: Path) -> Path:
    """Atomic JSON write (tmp + replace) so readers never see a partial report."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_suffix(p.suffix + ".tmp")
    tmp.write_text(json.dumps(report_dict(result), indent=2, sort_keys=True), encoding="utf-8")
    os.replace(tmp, p)
    return p
