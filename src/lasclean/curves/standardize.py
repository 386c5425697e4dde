# src/lasclean/curves/standardize.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional, Set

from lasclean.config.schema import MnemonicConfig
from lasclean.curves.categories import CurveCategory, classify_mnemonic, display_scale
from lasclean.errors import Diagnostic, Stage
from lasclean.model import Curve, LogFile

log = logging.getLogger(__name__)

# =============================================================================
# Canonicalization tables (alias -> canonical mnemonic)
# =============================================================================

# API RP 33 style table. Canonical mnemonics are the keys used by the physical
# range table and the category lookup.
API_ALIASES: Dict[str, str] = {
    # -----------------------------
    # Depth
    # -----------------------------
    "DEPT": "DEPT",
    "DEPTH": "DEPT",
    "DPTH": "DEPT",
    "MD": "DEPT",
    "TVD": "DEPT",

    # -----------------------------
    # Gamma ray
    # -----------------------------
    "GR": "GR",
    "GAM": "GR",
    "GAMMA": "GR",
    "GAMR": "GR",
    "GAMMARAY": "GR",
    "GAMMA_RAY": "GR",
    "GR_RAW": "GR",
    "GR_CORR": "GR",
    "CGR": "GR",
    "SGR": "GR",

    # -----------------------------
    # Neutron porosity
    # -----------------------------
    "NPHI": "NPHI",
    "TNPH": "NPHI",
    "TNPHI": "NPHI",
    "NEUT": "NPHI",
    "PHIN": "NPHI",
    "CNL": "NPHI",

    # -----------------------------
    # Density (RHOC/DRHO stay distinct from bulk density)
    # -----------------------------
    "RHOB": "RHOB",
    "DENS": "RHOB",
    "DEN": "RHOB",
    "RHOZ": "RHOB",
    "ZDEN": "RHOB",
    "FDC": "RHOB",
    "DRHO": "DRHO",

    # -----------------------------
    # Resistivity
    # -----------------------------
    "RT": "RT",
    "RES": "RT",
    "RESD": "RT",
    "RILD": "RT",
    "ILD": "RT",
    "LLD": "RT",
    "RXO": "RXO",
    "RMF": "RXO",
    "RESM": "RXO",
    "MSFL": "RXO",

    # -----------------------------
    # Caliper
    # -----------------------------
    "CALI": "CALI",
    "CAL": "CALI",
    "CALIPER": "CALI",

    # -----------------------------
    # SP
    # -----------------------------
    "SP": "SP",
    "SPONT": "SP",
    "SPONTANEOUS": "SP",

    # -----------------------------
    # Photoelectric
    # -----------------------------
    "PEF": "PEF",
    "PE": "PEF",
    "PHOT": "PEF",

    # -----------------------------
    # Sonic
    # -----------------------------
    "DT": "DT",
    "DTC": "DT",
    "DTCO": "DT",
    "SONIC": "DT",
    "AC": "DT",
    "AT": "DT",
    "DTS": "DTS",
    "SHEAR": "DTS",
    "ACS": "DTS",
}

# CWLS: a narrower table (no partial/vendor tool names)
CWLS_ALIASES: Dict[str, str] = {
    "DEPT": "DEPT",
    "DEPTH": "DEPT",
    "GR": "GR",
    "GAMMA": "GR",
    "GAMR": "GR",
    "NPHI": "NPHI",
    "TNPH": "NPHI",
    "NEUT": "NPHI",
    "RHOB": "RHOB",
    "DENS": "RHOB",
    "RHOZ": "RHOB",
    "RT": "RT",
    "RES": "RT",
    "RILD": "RT",
    "RXO": "RXO",
    "RMF": "RXO",
    "CALI": "CALI",
    "CAL": "CALI",
    "SP": "SP",
    "SPONT": "SP",
    "PEF": "PEF",
    "PE": "PEF",
    "DT": "DT",
    "SONIC": "DT",
    "DTS": "DTS",
    "SHEAR": "DTS",
}

STANDARDS = ("api", "cwls", "custom")


# =============================================================================
# Token cleaning
# =============================================================================

_WS_RE = re.compile(r"\s+")
_MNEM_BAD_RE = re.compile(r"[^A-Z0-9_:/\-]+")
# LAS duplicate suffixes like GR:1, GR:2
_MNEM_SUFFIX_RE = re.compile(r":\d+$")


def _clean_mnemonic_token(x: Optional[str]) -> str:
    if x is None:
        return ""
    s = x.strip()
    if not s:
        return ""
    s = _WS_RE.sub("", s).upper()
    return _MNEM_BAD_RE.sub("", s)


def _strip_suffix(m: str) -> str:
    return _MNEM_SUFFIX_RE.sub("", m)


def _build_table(base: Mapping[str, str]) -> Dict[str, str]:
    # Every canonical target also maps to itself, so re-standardizing is a no-op.
    out = {k: v for k, v in base.items() if k and v}
    for canon in list(out.values()):
        out.setdefault(canon, canon)
    return out


_BUILTIN_TABLES: Dict[str, Dict[str, str]] = {
    "api": _build_table(API_ALIASES),
    "cwls": _build_table(CWLS_ALIASES),
}


def alias_table(standard: str = "api", custom_mappings: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Alias table for a standard ("api", "cwls" or "custom" with `custom_mappings`).
    """
    std = (standard or "api").strip().lower()
    if std in _BUILTIN_TABLES:
        return dict(_BUILTIN_TABLES[std])
    if std == "custom":
        return _build_table(
            {_clean_mnemonic_token(k): _clean_mnemonic_token(v) for k, v in (custom_mappings or {}).items()}
        )
    raise ValueError(f"Unknown mnemonic standard: {standard!r} (expected one of {STANDARDS})")


def norm_mnemonic(mnemonic: Optional[str], *, standard: str = "api") -> str:
    """
    Canonical mnemonic for joins and category lookup. Unknown mnemonics come
    back cleaned (uppercase, suffix stripped) but otherwise unchanged.
    """
    m = _strip_suffix(_clean_mnemonic_token(mnemonic))
    if not m:
        return ""
    table = _BUILTIN_TABLES.get((standard or "api").strip().lower(), _BUILTIN_TABLES["api"])
    return table.get(m, m)


def aliases_for(canonical: str, *, standard: str = "api") -> List[str]:
    canon = norm_mnemonic(canonical, standard=standard)
    if not canon:
        return []
    fam = [canon]
    for alias, target in alias_table(standard).items():
        if target == canon and alias not in fam:
            fam.append(alias)
    return fam


# =============================================================================
# Standardization
# =============================================================================

@dataclass
class StandardizationResult:
    success: bool
    file: LogFile
    mappings: Dict[str, str] = field(default_factory=dict)
    standardized: int = 0
    non_standard: List[str] = field(default_factory=list)
    coverage: float = 0.0
    warnings: List[Diagnostic] = field(default_factory=list)


def _unique_name(target: str, used: Set[str]) -> str:
    if target not in used:
        return target
    k = 1
    while f"{target}:{k}" in used:
        k += 1
    return f"{target}:{k}"


def standardize(file: LogFile, cfg: Optional[MnemonicConfig] = None) -> StandardizationResult:
    """
    Rewrite curve mnemonics to the canonical set of `cfg.standard`.

    - recognised curves are renamed (row keys follow); with preserve_original
      the first-seen original mnemonic is kept on the curve
    - unrecognised curves pass through and are listed in `non_standard`
    - canonical collisions get LAS-style ":N" suffixes
    - auto_standardize=False reports the mapping without renaming

    Idempotent: standardize(standardize(f).file).file == standardize(f).file
    """
    cfg = cfg or MnemonicConfig()
    try:
        table = alias_table(cfg.standard, cfg.custom_mappings)
    except ValueError as e:
        return StandardizationResult(
            success=False,
            file=file,
            warnings=[Diagnostic(stage=Stage.STANDARDIZE, code="unknown_standard", message=str(e))],
        )

    used: Set[str] = set()
    renames: Dict[str, str] = {}
    mappings: Dict[str, str] = {}
    non_standard: List[str] = []
    warnings: List[Diagnostic] = []
    curves: List[Curve] = []
    n_std = 0

    for c in file.curves:
        key = _strip_suffix(_clean_mnemonic_token(c.mnemonic))
        canon = table.get(key)
        if canon is None:
            non_standard.append(c.mnemonic)
            target = c.mnemonic
        else:
            n_std += 1
            target = canon if bool(cfg.auto_standardize) else c.mnemonic

        final = _unique_name(target, used)
        used.add(final)

        if final == c.mnemonic:
            curves.append(c)
            continue

        mappings[c.mnemonic] = final
        renames[c.mnemonic] = final
        warnings.append(
            Diagnostic(
                stage=Stage.STANDARDIZE,
                code="renamed",
                message=f"Standardized {c.mnemonic} -> {final}",
                curve=final,
            )
        )

        original = c.original_mnemonic
        if bool(cfg.preserve_original) and original is None:
            original = c.mnemonic

        category = c.category
        if canon is not None and not c.is_depth:
            cat = classify_mnemonic(canon)
            if cat is not CurveCategory.GENERIC:
                category = cat

        curves.append(
            replace(
                c,
                mnemonic=final,
                original_mnemonic=original,
                category=category,
                scale=display_scale(category),
            )
        )

    total = len(file.curves)
    coverage = (float(n_std) / float(total) * 100.0) if total else 0.0
    out = file.with_curves(curves, renames=renames)

    if mappings:
        log.debug("%s: standardized %d curve(s) to %s", file.filename, len(mappings), cfg.standard)

    return StandardizationResult(
        success=True,
        file=out,
        mappings=mappings,
        standardized=n_std,
        non_standard=non_standard,
        coverage=coverage,
        warnings=warnings,
    )


def mapping_statistics(file: LogFile, standard: str = "api") -> Dict[str, object]:
    """Coverage of a file's mnemonics by a standard, without renaming anything."""
    table = _BUILTIN_TABLES.get((standard or "api").strip().lower(), _BUILTIN_TABLES["api"])
    non_standard = [c.mnemonic for c in file.curves if _strip_suffix(_clean_mnemonic_token(c.mnemonic)) not in table]
    total = len(file.curves)
    n_std = total - len(non_standard)
    return {
        "total": total,
        "standardized": n_std,
        "non_standard": non_standard,
        "coverage": (float(n_std) / float(total) * 100.0) if total else 0.0,
    }
