# src/lasclean/io/las.py
from __future__ import annotations

import logging
import math
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from lasclean.config.schema import ParseOptions
from lasclean.curves.categories import (
    CurveCategory,
    classify_mnemonic,
    display_color,
    display_scale,
    display_track,
)
from lasclean.curves.standardize import norm_mnemonic
from lasclean.errors import Diagnostic, ParseError, parse_warning
from lasclean.model import Curve, CurveRole, DataRow, HeaderParameter, LogFile, WellHeader

log = logging.getLogger(__name__)

DEFAULT_NULL = -999.25
# Relative/absolute tolerance for matching the null sentinel
NULL_RTOL = 1e-9
NULL_ATOL = 1e-6
# Depth step tolerance when comparing declared vs observed header values
STEP_TOL_FRAC = 0.10
# Per-row warnings beyond this are summarised
MAX_ROW_WARNINGS = 50


# =============================================================================
# Line-level regexes
# =============================================================================

_SECTION_RE = re.compile(r"^\s*~\s*([A-Za-z])")
_COMMENT_RE = re.compile(r"^\s*#")
_TOKEN_SPLIT_RE = re.compile(r"[\s,]+")
_PAREN_UNIT_RE = re.compile(r"\(([^)]+)\)")
_WS_RE = re.compile(r"\s+")

_WRAP_LINE_RE = re.compile(
    r"\bWRAP\b\s*(?:[.:=]|\s)\s*(YES|NO|TRUE|FALSE|0|1|Y|N)\b",
    re.IGNORECASE,
)


def is_wrapped_las(text: str) -> Optional[bool]:
    """
    Heuristic: scan the header for a WRAP line (YES/NO) without fully parsing.

    Returns:
      - True if WRAP=YES
      - False if WRAP=NO
      - None if cannot determine
    """
    # Limit to header-ish content so data blocks cannot match.
    cut = text.upper().find("~A")
    head = text[:cut] if cut > 0 else text
    for line in head.splitlines():
        m = _WRAP_LINE_RE.search(line)
        if not m:
            continue
        val = m.group(1).strip().upper()
        if val in {"YES", "TRUE", "1", "Y"}:
            return True
        if val in {"NO", "FALSE", "0", "N"}:
            return False
        return None
    return None


# =============================================================================
# Results
# =============================================================================

@dataclass
class ParseResult:
    success: bool
    file: Optional[LogFile] = None
    error: Optional[ParseError] = None
    warnings: List[Diagnostic] = field(default_factory=list)
    parse_time: float = 0.0

    @property
    def message(self) -> str:
        return str(self.error) if self.error is not None else ""


# =============================================================================
# Section split
# =============================================================================

@dataclass
class _Sections:
    version: List[str] = field(default_factory=list)
    well: List[str] = field(default_factory=list)
    curve: List[str] = field(default_factory=list)
    parameter: List[str] = field(default_factory=list)
    data: List[str] = field(default_factory=list)
    seen: set = field(default_factory=set)


_SECTION_BY_LETTER = {
    "v": "version",
    "w": "well",
    "c": "curve",
    "p": "parameter",
    "a": "data",
}


def _split_sections(text: str) -> _Sections:
    """
    Accumulate non-marker, non-comment lines per section. ~O (other) and
    anything before the first marker are dropped.
    """
    out = _Sections()
    current: Optional[str] = None
    for raw in text.splitlines():
        line = raw.strip()
        if not line or _COMMENT_RE.match(line):
            continue
        m = _SECTION_RE.match(line)
        if m:
            current = _SECTION_BY_LETTER.get(m.group(1).lower())
            if current is not None:
                out.seen.add(current)
            continue
        if current is not None:
            getattr(out, current).append(line)
    return out


# =============================================================================
# Header items
# =============================================================================

def _clean_mnemonic(m: str) -> str:
    return _WS_RE.sub("", (m or "").strip())


def _to_float(tok: str) -> Optional[float]:
    try:
        v = float(tok)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


def _parse_header_line(line: str) -> Optional[HeaderParameter]:
    """
    LAS header item. Both layouts are accepted:

        STRT.M      1670.0 : START DEPTH      (MNEM.UNIT VALUE : DESCRIPTION)
        COMP : ACME Oil: Houston             (MNEMONIC : VALUE)

    Only the first colon is structural; later colons belong to the value.
    """
    left, sep, right = line.partition(":")
    left = left.strip()
    right = right.strip()
    if not left:
        return None

    if "." in left:
        mn, rest = left.split(".", 1)
        if rest and not rest[0].isspace():
            parts = rest.split(None, 1)
            unit = parts[0]
            value = parts[1].strip() if len(parts) > 1 else ""
        else:
            unit = ""
            value = rest.strip()
        mn = _clean_mnemonic(mn).upper()
        if not mn:
            return None
        return HeaderParameter(mnemonic=mn, unit=unit, value=value, description=right)

    # no unit delimiter: everything after the first colon is the value
    parts = left.split(None, 1)
    mn = _clean_mnemonic(parts[0]).upper()
    if not mn:
        return None
    if sep:
        return HeaderParameter(mnemonic=mn, value=right)
    return HeaderParameter(mnemonic=mn, value=parts[1].strip() if len(parts) > 1 else "")


def _parse_curve_line(line: str) -> Optional[Tuple[str, str, str]]:
    """
    Curve definition -> (mnemonic, unit, description).

        GR  .GAPI   : Gamma Ray
        GR : GAPI : Gamma Ray
        GR : Gamma Ray (API)
    """
    left, _sep, right = line.partition(":")
    left = left.strip()
    if not left:
        return None

    if "." in left:
        mn, rest = left.split(".", 1)
        unit = rest.split(None, 1)[0] if rest and not rest[0].isspace() else ""
        desc = right.strip()
    else:
        mn = left
        if ":" in right:
            u, d = right.split(":", 1)
            unit, desc = u.strip(), d.strip()
        else:
            unit, desc = "", right.strip()

    if not unit:
        m = _PAREN_UNIT_RE.search(desc)
        if m:
            unit = m.group(1).strip()
            desc = _PAREN_UNIT_RE.sub("", desc, count=1).strip()

    mn = _clean_mnemonic(mn)
    if not mn:
        return None
    return mn, unit, desc


# =============================================================================
# Section parsers
# =============================================================================

_WELL_TEXT_FIELDS = {
    "COMP": "company",
    "WELL": "well",
    "UWI": "uwi",
    "FLD": "field",
    "LOC": "location",
    "DATE": "date",
    "SRVC": "service_company",
    "SRV": "service_company",
    "API": "api",
}


def _parse_header_items(lines: Iterable[str]) -> List[HeaderParameter]:
    out: List[HeaderParameter] = []
    for line in lines:
        item = _parse_header_line(line)
        if item is not None:
            out.append(item)
    return out


def _header_fields(
    version_items: List[HeaderParameter],
    well_items: List[HeaderParameter],
    param_items: List[HeaderParameter],
) -> Dict[str, object]:
    """
    Resolve the explicit header schema. VERS/WRAP live in ~V; NULL/STRT/STOP/STEP
    are accepted from either ~V or ~W (~W wins).
    """
    h: Dict[str, object] = {}
    extras: List[HeaderParameter] = []

    for it in version_items:
        if it.mnemonic == "VERS":
            h["version"] = it.value or "2.0"
        elif it.mnemonic == "WRAP":
            h["wrap"] = it.value.strip().upper() in {"YES", "Y", "TRUE", "1"}

    for it in list(version_items) + list(well_items):
        v = _to_float(it.value)
        if it.mnemonic == "NULL" and v is not None:
            h["null_value"] = v
        elif it.mnemonic == "STRT" and v is not None:
            h["declared_start"] = v
        elif it.mnemonic == "STOP" and v is not None:
            h["declared_stop"] = v
        elif it.mnemonic == "STEP" and v is not None:
            h["declared_step"] = v

    for it in well_items:
        key = _WELL_TEXT_FIELDS.get(it.mnemonic)
        if key is not None:
            if it.value:
                h[key] = it.value
        elif it.mnemonic == "ELEV":
            h["elevation"] = _to_float(it.value)
        elif it.mnemonic not in {"NULL", "STRT", "STOP", "STEP"}:
            extras.append(it)

    h["parameters"] = tuple(extras + list(param_items))
    return h


def _build_curves(lines: Iterable[str], warnings: List[Diagnostic]) -> List[Curve]:
    curves: List[Curve] = []
    seen: Dict[str, int] = {}
    for line in lines:
        parsed = _parse_curve_line(line)
        if parsed is None:
            warnings.append(parse_warning("bad_curve_line", f"Unparseable curve definition: {line!r}"))
            continue
        mn, unit, desc = parsed

        # duplicate mnemonics get LAS-style suffixes (GR, GR:1, GR:2)
        if mn in seen:
            seen[mn] += 1
            new = f"{mn}:{seen[mn]}"
            warnings.append(parse_warning("duplicate_curve", f"Duplicate curve {mn} renamed to {new}", curve=new))
            mn = new
        else:
            seen[mn] = 0

        idx = len(curves)
        if idx == 0:
            role = CurveRole.DEPTH
            category = CurveCategory.DEPTH
        else:
            role = CurveRole.MEASUREMENT
            category = classify_mnemonic(norm_mnemonic(mn))
            if category is CurveCategory.DEPTH:
                category = CurveCategory.GENERIC

        curves.append(
            Curve(
                mnemonic=mn,
                unit=unit,
                description=desc,
                role=role,
                category=category,
                track=display_track(category, idx),
                scale=display_scale(category),
                color=display_color(idx),
            )
        )
    return curves


def _iter_row_tokens(
    lines: List[str],
    *,
    n_cols: int,
    wrapped: bool,
    warnings: List[Diagnostic],
) -> Iterable[List[str]]:
    """
    Yield exactly n_cols tokens per depth row.

    - unwrapped: one row per line; short lines are dropped with a warning,
      extra tokens are ignored with a warning
    - wrapped: tokens are accumulated across lines; a trailing partial row is dropped
    """
    n_short = 0
    n_long = 0

    if wrapped:
        buf: List[str] = []
        for line in lines:
            buf.extend(t for t in _TOKEN_SPLIT_RE.split(line) if t)
            while len(buf) >= n_cols:
                yield buf[:n_cols]
                buf = buf[n_cols:]
        if buf:
            warnings.append(
                parse_warning("short_row", f"Dropped incomplete wrapped row ({len(buf)} of {n_cols} values)")
            )
        return

    for lineno, line in enumerate(lines, start=1):
        toks = [t for t in _TOKEN_SPLIT_RE.split(line) if t]
        if not toks:
            continue
        if len(toks) < n_cols:
            n_short += 1
            if n_short <= MAX_ROW_WARNINGS:
                warnings.append(
                    parse_warning(
                        "short_row",
                        f"Data line {lineno}: {len(toks)} values for {n_cols} curves; row dropped",
                    )
                )
            continue
        if len(toks) > n_cols:
            n_long += 1
        yield toks[:n_cols]

    if n_short > MAX_ROW_WARNINGS:
        warnings.append(parse_warning("short_row", f"{n_short} short data rows dropped in total"))
    if n_long:
        warnings.append(parse_warning("extra_values", f"{n_long} data row(s) had extra values; extras ignored"))


def _build_rows(
    lines: List[str],
    curves: List[Curve],
    *,
    null_value: float,
    wrapped: bool,
    warnings: List[Diagnostic],
) -> List[DataRow]:
    names = [c.mnemonic for c in curves]
    n_cols = len(names)
    bad_tokens: Dict[str, int] = {}
    n_no_depth = 0
    rows: List[DataRow] = []

    for toks in _iter_row_tokens(lines, n_cols=n_cols, wrapped=wrapped, warnings=warnings):
        values: Dict[str, Optional[float]] = {}
        for name, tok in zip(names, toks):
            v = _to_float(tok)
            if v is None:
                bad_tokens[name] = bad_tokens.get(name, 0) + 1
            elif math.isclose(v, null_value, rel_tol=NULL_RTOL, abs_tol=NULL_ATOL):
                v = None
            values[name] = v

        depth = values[names[0]]
        if depth is None:
            n_no_depth += 1
            continue
        rows.append(DataRow(depth=float(depth), values=values))

    for name, n in bad_tokens.items():
        warnings.append(
            parse_warning("non_numeric", f"{name}: {n} non-numeric value(s) treated as missing", curve=name)
        )
    if n_no_depth:
        warnings.append(parse_warning("missing_depth", f"{n_no_depth} row(s) without a depth value dropped"))
    return rows


def _recompute_depth_range(
    rows: List[DataRow],
    h: Dict[str, object],
    warnings: List[Diagnostic],
) -> None:
    """Header start/stop/step from the rows; declared values are kept separately."""
    d_start = h.get("declared_start")
    d_stop = h.get("declared_stop")
    d_step = h.get("declared_step")

    if not rows:
        h["start_depth"] = d_start
        h["stop_depth"] = d_stop
        h["step"] = d_step
        return

    start = rows[0].depth
    stop = rows[-1].depth
    step = (rows[1].depth - rows[0].depth) if len(rows) > 1 else d_step
    h["start_depth"] = start
    h["stop_depth"] = stop
    h["step"] = step

    if step is None:
        return
    tol = abs(float(step)) * STEP_TOL_FRAC
    if isinstance(d_step, float) and abs(d_step - float(step)) > tol:
        warnings.append(
            parse_warning("header_step", f"Declared STEP {d_step:g} differs from data step {float(step):g}; using data")
        )
    tol_depth = max(abs(float(step)), 1e-6)
    if isinstance(d_start, float) and abs(d_start - start) > tol_depth:
        warnings.append(
            parse_warning("header_start", f"Declared STRT {d_start:g} differs from first depth {start:g}; using data")
        )
    if isinstance(d_stop, float) and abs(d_stop - stop) > tol_depth:
        warnings.append(
            parse_warning("header_stop", f"Declared STOP {d_stop:g} differs from last depth {stop:g}; using data")
        )


# =============================================================================
# Public API
# =============================================================================

def read_las_bytes(
    data: bytes,
    filename: str,
    options: Optional[ParseOptions] = None,
) -> Tuple[LogFile, List[Diagnostic]]:
    """
    Decode a LAS buffer into a LogFile.

    Raises ParseError on structural failures (missing ~W/~C, empty, too large);
    every other anomaly becomes a Diagnostic with best-effort recovery.
    """
    opts = options or ParseOptions()
    warnings: List[Diagnostic] = []

    if len(data) > int(opts.max_bytes):
        raise ParseError(
            f"File size ({len(data)} bytes) exceeds maximum allowed size ({int(opts.max_bytes)} bytes)",
            code="too_large",
        )
    if isinstance(data, (bytes, bytearray)):
        # undecodable bytes become U+FFFD and later fail numeric conversion
        text = bytes(data).decode("utf-8", errors="replace")
    elif isinstance(data, str):
        text = data
    else:
        raise ParseError(f"Cannot decode {type(data).__name__} input for {filename}", code="decode")
    if not text.strip():
        raise ParseError("File is empty or contains no valid content", code="empty")

    sec = _split_sections(text)
    missing = [name for name in ("well", "curve") if name not in sec.seen]
    if missing:
        names = ", ".join(f"~{m[0].upper()}" for m in missing)
        raise ParseError(f"Missing required section(s): {names}", code="missing_section")

    if "version" not in sec.seen:
        warnings.append(parse_warning("missing_version", "No ~V section; assuming LAS 2.0, unwrapped"))

    h = _header_fields(
        _parse_header_items(sec.version),
        _parse_header_items(sec.well),
        _parse_header_items(sec.parameter),
    )
    if "null_value" not in h:
        h["null_value"] = DEFAULT_NULL
    if "wrap" not in h:
        h["wrap"] = bool(is_wrapped_las(text))
    if opts.wrap_override is not None:
        h["wrap"] = bool(opts.wrap_override)

    for key, label in (("company", "COMP"), ("well", "WELL"), ("uwi", "UWI")):
        if not h.get(key):
            warnings.append(parse_warning("missing_header", f"Missing well information field {label}"))

    curves = _build_curves(sec.curve, warnings)
    if not curves:
        raise ParseError("Curve section defines no curves", code="missing_section")

    if "data" not in sec.seen:
        warnings.append(parse_warning("missing_data", "No ~A section; file has no data rows"))
    rows = _build_rows(
        sec.data,
        curves,
        null_value=float(h["null_value"]),  # type: ignore[arg-type]
        wrapped=bool(h["wrap"]),
        warnings=warnings,
    )
    if "data" in sec.seen and not rows:
        warnings.append(parse_warning("no_rows", "Data section contains no usable rows"))

    _recompute_depth_range(rows, h, warnings)
    h["depth_unit"] = curves[0].unit

    header = WellHeader(**h)  # type: ignore[arg-type]
    lf = LogFile(filename=str(filename), header=header, curves=tuple(curves), rows=tuple(rows))
    return lf.refresh_statistics(), warnings


def parse(
    data: bytes,
    filename: str,
    options: Optional[ParseOptions] = None,
) -> ParseResult:
    """
    Never raises: structural failures come back as ParseResult(success=False, error=...).
    """
    t0 = time.perf_counter()
    try:
        lf, warnings = read_las_bytes(data, filename, options)
    except ParseError as e:
        log.info("%s: parse failed (%s): %s", filename, e.code, e)
        return ParseResult(success=False, error=e, parse_time=time.perf_counter() - t0)
    except Exception as e:
        err = ParseError(f"Unexpected parse failure: {type(e).__name__}: {e}", code="unexpected")
        log.exception("%s: unexpected parse failure", filename)
        return ParseResult(success=False, error=err, parse_time=time.perf_counter() - t0)

    log.debug("%s: parsed %d curves x %d rows (%d warnings)", filename, len(lf.curves), len(lf.rows), len(warnings))
    return ParseResult(success=True, file=lf, warnings=warnings, parse_time=time.perf_counter() - t0)


def read_las_path(path: Path, options: Optional[ParseOptions] = None) -> ParseResult:
    """Size-checked file read followed by parse(). Unreadable paths come back as code io."""
    p = Path(path)
    opts = options or ParseOptions()
    try:
        size = p.stat().st_size
        if size > int(opts.max_bytes):
            return ParseResult(
                success=False,
                error=ParseError(f"File size ({size} bytes) exceeds maximum allowed size", code="too_large"),
            )
        data = p.read_bytes()
    except OSError as e:
        log.warning("%s: cannot read: %s", p, e)
        return ParseResult(success=False, error=ParseError(f"Cannot read {p}: {e}", code="io"))
    return parse(data, p.name, opts)
