# src/lasclean/pipeline/run.py
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from lasclean.algorithms import apply_baseline, apply_denoise, apply_despike
from lasclean.algorithms.common import StepOutcome
from lasclean.config.defaults import default_options
from lasclean.config.schema import ProcessingOptions
from lasclean.curves.standardize import standardize
from lasclean.errors import Diagnostic, LasCleanError, Stage
from lasclean.io.las import ParseResult, parse, read_las_path
from lasclean.model import LogFile
from lasclean.qc.assess import QCResult, assess
from lasclean.utils.config import as_plain_dict
from lasclean.utils.memory import PeakMemory

from .result import PipelineResult, ProcessingHistoryEntry

log = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


class _Run:
    """Mutable state of one invocation. Never shared between invocations."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        self.t0 = time.perf_counter()
        self.mem = PeakMemory()
        self.mem.sample()
        self.history: List[ProcessingHistoryEntry] = []
        self.warnings: List[Diagnostic] = []
        self.errors: List[str] = []

    def record(
        self,
        step: str,
        started: Tuple[str, float],
        *,
        success: bool,
        skipped: bool = False,
        algorithms: Tuple[str, ...] = (),
        message: str = "",
        parameters: Optional[Dict[str, Any]] = None,
        curves_affected: Tuple[str, ...] = (),
    ) -> None:
        ts, t = started
        self.history.append(
            ProcessingHistoryEntry(
                step=step,
                timestamp=ts,
                duration=time.perf_counter() - t,
                success=success,
                skipped=skipped,
                algorithms=tuple(algorithms),
                message=message,
                parameters=dict(parameters or {}),
                curves_affected=tuple(curves_affected),
            )
        )
        self.mem.sample()

    def skip(self, step: str, message: str) -> None:
        self.record(step, (_utc_now(), time.perf_counter()), success=True, skipped=True, message=message)

    def result(self, **kw) -> PipelineResult:
        return PipelineResult(
            filename=self.filename,
            history=self.history,
            warnings=self.warnings,
            errors=self.errors,
            execution_time=time.perf_counter() - self.t0,
            peak_memory_mb=self.mem.peak_mb,
            **kw,
        )


def _start() -> Tuple[str, float]:
    return _utc_now(), time.perf_counter()


# =============================================================================
# Public entry points
# =============================================================================

def run_pipeline(
    data: bytes,
    filename: str,
    options: Optional[ProcessingOptions] = None,
) -> PipelineResult:
    """
    parse -> standardize -> validate (pre) -> gated conditioning -> validate (post)

    Never raises. A parse failure is the only condition that stops the run
    before QC; it returns success=False with no file.
    """
    opts = options or default_options()
    run = _Run(str(filename))
    started = _start()
    return _after_parse(parse(data, filename, opts.parse), started, opts, run)


def run_path(path: Path, options: Optional[ProcessingOptions] = None) -> PipelineResult:
    """run_pipeline() on a file; the size ceiling is checked before reading."""
    p = Path(path)
    opts = options or default_options()
    run = _Run(p.name)
    started = _start()
    return _after_parse(read_las_path(p, opts.parse), started, opts, run)


def run_logfile(file: LogFile, options: Optional[ProcessingOptions] = None) -> PipelineResult:
    """Same pipeline for an already-parsed file (no parse step in the history)."""
    opts = options or default_options()
    return _process(file, opts, _Run(file.filename))


def _after_parse(pr: ParseResult, started: Tuple[str, float], opts: ProcessingOptions, run: _Run) -> PipelineResult:
    if not pr.success or pr.file is None:
        msg = pr.message or "parse failed"
        run.errors.append(msg)
        run.record("parse", started, success=False, message=msg)
        log.warning("%s: %s", run.filename, msg)
        return run.result(success=False)

    run.warnings.extend(pr.warnings)
    run.record(
        "parse",
        started,
        success=True,
        message=f"{len(pr.file.curves)} curves, {len(pr.file.rows)} rows",
    )
    return _process(pr.file, opts, run)


# =============================================================================
# Steps
# =============================================================================

def _standardize_step(file: LogFile, opts: ProcessingOptions, run: _Run) -> LogFile:
    cfg = opts.mnemonics
    if not cfg.enabled:
        run.skip("standardize", "disabled")
        return file

    started = _start()
    sr = standardize(file, cfg)
    run.warnings.extend(sr.warnings)
    if not sr.success:
        msg = "; ".join(w.message for w in sr.warnings) or "standardization failed"
        run.errors.append(msg)
        run.record("standardize", started, success=False, message=msg)
        return file

    run.record(
        "standardize",
        started,
        success=True,
        algorithms=(cfg.standard,),
        message=f"{len(sr.mappings)} renamed, {len(sr.non_standard)} non-standard",
        parameters=as_plain_dict(cfg),
        curves_affected=tuple(sr.mappings),
    )
    return sr.file


def _validate_step(step: str, file: LogFile, opts: ProcessingOptions, run: _Run) -> Optional[QCResult]:
    started = _start()
    try:
        qc = assess(file, opts.validation, standard=opts.mnemonics.standard)
    except Exception as e:
        msg = f"{step} failed: {type(e).__name__}: {e}"
        log.exception("%s: %s", run.filename, msg)
        run.errors.append(msg)
        run.record(step, started, success=False, message=msg)
        return None
    run.record(step, started, success=True, message=f"score {qc.overall_score:.1f} ({qc.grade})")
    return qc


_CONDITIONING: Tuple[Tuple[str, Callable[..., StepOutcome]], ...] = (
    ("denoise", apply_denoise),
    ("despike", apply_despike),
    ("baseline", apply_baseline),
)


def _condition(file: LogFile, opts: ProcessingOptions, run: _Run) -> Tuple[LogFile, bool, bool]:
    """
    Returns (file, applied, failed). On a failing step the unconditioned file
    comes back and no further conditioning steps are attempted.
    """
    current = file
    applied = False
    for step, op in _CONDITIONING:
        cfg = getattr(opts, step)
        if not cfg.enabled:
            run.skip(step, "disabled")
            continue

        started = _start()
        try:
            outcome = op(current, cfg)
            current = current.with_columns(outcome.columns)
        except LasCleanError as e:
            msg = f"{step} failed ({e.code}): {e}"
        except Exception as e:
            msg = f"{step} failed: {type(e).__name__}: {e}"
            log.exception("%s: %s", run.filename, msg)
        else:
            run.warnings.extend(outcome.warnings)
            applied = applied or bool(outcome.columns)
            run.record(
                step,
                started,
                success=True,
                algorithms=(outcome.algorithm,) if outcome.processed else (),
                message=f"{len(outcome.processed)} curve(s) processed, {len(outcome.skipped)} skipped",
                parameters=as_plain_dict(cfg),
                curves_affected=tuple(outcome.columns),
            )
            continue

        run.errors.append(msg)
        run.warnings.append(Diagnostic(stage=Stage.ALGORITHM, code="step_failed", message=msg))
        run.record(step, started, success=False, message=msg, parameters=as_plain_dict(cfg))
        log.warning("%s: %s", run.filename, msg)
        return file, False, True

    return current, applied, False


def _process(file: LogFile, opts: ProcessingOptions, run: _Run) -> PipelineResult:
    original = file
    file = _standardize_step(file, opts, run)

    qc_before = _validate_step("validate_pre", file, opts, run)
    if qc_before is None:
        return run.result(success=False, file=file, original_file=original)
    run.warnings.extend(qc_before.warnings)

    gate = float(opts.quality_gate)
    applied = False
    failed = False
    conditioned = file
    if qc_before.overall_score > gate:
        conditioned, applied, failed = _condition(file, opts, run)
    else:
        msg = (
            f"Quality score {qc_before.overall_score:.1f} is not above the gate ({gate:g}); "
            "conditioning skipped"
        )
        run.warnings.append(Diagnostic(stage=Stage.PIPELINE, code="quality_gate", message=msg))
        log.info("%s: %s", run.filename, msg)
        for step, _op in _CONDITIONING:
            run.skip(step, "quality gate")

    qc_after = _validate_step("validate_post", conditioned, opts, run)
    if qc_after is not None:
        # findings already reported on the input are listed once
        seen = set(qc_before.warnings)
        run.warnings.extend(w for w in qc_after.warnings if w not in seen)

    success = not run.errors
    log.info(
        "%s: %s, score %.1f -> %s",
        run.filename,
        "ok" if success else "failed",
        qc_before.overall_score,
        f"{qc_after.overall_score:.1f}" if qc_after is not None else "n/a",
    )
    return run.result(
        success=success and not failed,
        file=conditioned,
        original_file=original,
        qc_before=qc_before,
        qc_after=qc_after,
        conditioning_applied=applied,
    )
