# src/lasclean/errors.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional


# =============================================================================
# Exceptions
# =============================================================================

class LasCleanError(RuntimeError):
    """Base error for the conditioning pipeline. `code` is a short machine tag."""

    def __init__(self, message: str, *, code: str = "error") -> None:
        super().__init__(message)
        self.code = str(code)


class ParseError(LasCleanError):
    """
    Structural failure while decoding a LAS buffer.

    Codes:
      - missing_section: no ~W or no ~C section
      - empty: buffer has no content
      - too_large: buffer exceeds ParseOptions.max_bytes
      - decode: input is neither bytes nor text
      - io: file could not be read
      - unexpected: any other failure inside the parser
    """


class AlgorithmError(LasCleanError):
    """Raised by a conditioning operator. Fatal for the curve (or step), never for the run."""

    def __init__(self, message: str, *, code: str = "degenerate", curve: Optional[str] = None) -> None:
        super().__init__(message, code=code)
        self.curve = curve


# =============================================================================
# Structured diagnostics
# =============================================================================

class Stage(str, Enum):
    PARSE = "parse"
    STANDARDIZE = "standardize"
    VALIDATION = "validation"
    ALGORITHM = "algorithm"
    PIPELINE = "pipeline"


@dataclass(frozen=True)
class Diagnostic:
    """
    One non-fatal finding. Validation warnings are Diagnostic(stage=Stage.VALIDATION).
    """
    stage: Stage
    code: str
    message: str
    curve: Optional[str] = None
    depth: Optional[float] = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["stage"] = self.stage.value
        return d


def parse_warning(code: str, message: str, *, curve: Optional[str] = None) -> Diagnostic:
    return Diagnostic(stage=Stage.PARSE, code=code, message=message, curve=curve)


def validation_warning(
    code: str,
    message: str,
    *,
    curve: Optional[str] = None,
    depth: Optional[float] = None,
) -> Diagnostic:
    return Diagnostic(stage=Stage.VALIDATION, code=code, message=message, curve=curve, depth=depth)


def algorithm_warning(code: str, message: str, *, curve: Optional[str] = None) -> Diagnostic:
    return Diagnostic(stage=Stage.ALGORITHM, code=code, message=message, curve=curve)
