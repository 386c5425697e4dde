from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

import pytest


def build_las(
    curves: Sequence[Tuple[str, str, str]],
    rows: Iterable[Sequence[object]],
    *,
    null: float = -999.25,
    wrap: bool = False,
    well: Optional[dict] = None,
    strt: Optional[float] = None,
    stop: Optional[float] = None,
    step: Optional[float] = None,
) -> str:
    """LAS 2.0 text from curve (mnemonic, unit, description) triples and data rows."""
    w = {"COMP": "ACME OIL", "WELL": "TEST-1", "UWI": "100/01-01-001-01W5/0"}
    if well is not None:
        w = well
    lines: List[str] = [
        "~VERSION INFORMATION",
        "VERS.   2.0 : CWLS LOG ASCII STANDARD",
        f"WRAP.   {'YES' if wrap else 'NO'} : ONE LINE PER DEPTH STEP",
        "~WELL INFORMATION",
    ]
    if strt is not None:
        lines.append(f"STRT.M  {strt} : START DEPTH")
    if stop is not None:
        lines.append(f"STOP.M  {stop} : STOP DEPTH")
    if step is not None:
        lines.append(f"STEP.M  {step} : STEP")
    lines.append(f"NULL.    {null} : NULL VALUE")
    for k, v in w.items():
        lines.append(f"{k}.    {v} : {k}")
    lines.append("~CURVE INFORMATION")
    for mn, unit, desc in curves:
        lines.append(f"{mn}.{unit}  : {desc}")
    lines.append("~A")
    for r in rows:
        lines.append(" ".join(str(v) for v in r))
    return "\n".join(lines) + "\n"


@pytest.fixture
def las_builder():
    return build_las
