# src/lasclean/pipeline/result.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from lasclean.errors import Diagnostic
from lasclean.model import LogFile
from lasclean.qc.assess import QCResult
from lasclean.utils.config import as_plain_dict


@dataclass(frozen=True)
class ProcessingHistoryEntry:
    step: str
    timestamp: str            # UTC ISO-8601, step start
    duration: float           # seconds
    success: bool
    skipped: bool = False
    algorithms: Tuple[str, ...] = ()
    message: str = ""
    # Effective step configuration and the curves whose values or names changed
    parameters: Dict[str, Any] = field(default_factory=dict)
    curves_affected: Tuple[str, ...] = ()


@dataclass
class PipelineResult:
    """
    Everything one pipeline invocation produced. `file` is the conditioned file
    on success, the unconditioned one when conditioning failed or was gated,
    and None when parsing failed.
    """
    success: bool
    filename: str
    file: Optional[LogFile] = None
    original_file: Optional[LogFile] = None
    qc_before: Optional[QCResult] = None
    qc_after: Optional[QCResult] = None
    history: List[ProcessingHistoryEntry] = field(default_factory=list)
    warnings: List[Diagnostic] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    conditioning_applied: bool = False
    execution_time: float = 0.0
    peak_memory_mb: Optional[float] = None

    @property
    def quality_score(self) -> Optional[float]:
        qc = self.qc_after or self.qc_before
        return qc.overall_score if qc is not None else None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready report; curve metadata only, no data rows."""
        f = self.file
        return {
            "success": self.success,
            "filename": self.filename,
            "conditioning_applied": self.conditioning_applied,
            "execution_time": self.execution_time,
            "peak_memory_mb": self.peak_memory_mb,
            "header": as_plain_dict(f.header) if f is not None else None,
            "curves": [as_plain_dict(c) for c in f.curves] if f is not None else [],
            "rows": len(f.rows) if f is not None else 0,
            "qc_before": as_plain_dict(self.qc_before),
            "qc_after": as_plain_dict(self.qc_after),
            "history": [as_plain_dict(h) for h in self.history],
            "warnings": [w.to_dict() for w in self.warnings],
            "errors": list(self.errors),
        }
