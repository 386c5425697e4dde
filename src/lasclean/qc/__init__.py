from __future__ import annotations

from .assess import (
    CurveQuality,
    MnemonicSummary,
    PhysicalValidation,
    QCResult,
    assess,
    check_depth_consistency,
    cross_validate,
    overall_quality_score,
    quality_grade,
    recommendations,
    validate_physical_ranges,
)

__all__ = [
    "CurveQuality",
    "MnemonicSummary",
    "PhysicalValidation",
    "QCResult",
    "assess",
    "check_depth_consistency",
    "cross_validate",
    "overall_quality_score",
    "quality_grade",
    "recommendations",
    "validate_physical_ranges",
]
