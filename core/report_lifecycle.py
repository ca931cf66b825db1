"""Report state machine: Draft -> Analyzing -> Analyzed -> Saved -> Shared -> Feedback.

All transitions go through ReportLifecycle and are atomic with respect to
each other. A failed analysis returns the report to Draft and keeps the error
on ``report.last_error``; failed persistence leaves the report as it was.
"""

import logging
import threading
import time
from typing import Dict, Iterable, Optional

from core.errors import (
    AnalysisCancelledError,
    AnalysisInProgressError,
    InvalidTransitionError,
    MissingImageError,
    NotAnalyzedError,
    NotSavedError,
    NotSharedError,
)
from core.utils import DiagnosisResult, Report, ReportState

logger = logging.getLogger(__name__)


class AnalysisHandle:
    """Identifies one in-flight analysis and lets the caller cancel it."""

    def __init__(self, report: Report):
        self.report = report
        self.started_at = time.monotonic()
        self._cancelled = threading.Event()
        self._reason: Optional[Exception] = None
        self._lock = threading.Lock()

    def cancel(self, reason: Optional[Exception] = None):
        """Request cancellation. The result, if any, will be discarded.

        ``reason`` is the error the analysis settles with; the first one wins.
        """
        with self._lock:
            if not self._cancelled.is_set():
                self._reason = reason or AnalysisCancelledError("Analysis cancelled.")
                self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def reason(self) -> Optional[Exception]:
        return self._reason


class ReportLifecycle:
    """Drives reports through their states and persists them via a store."""

    def __init__(self, store):
        self._store = store
        self._lock = threading.RLock()
        self._handles: Dict[int, AnalysisHandle] = {}

    @property
    def store(self):
        return self._store

    def create(self, user_id: str, image_ref: str) -> Report:
        if not user_id:
            raise ValueError("user_id must not be empty")
        return Report(user_id=user_id, image_ref=image_ref)

    def active_handle(self, report: Report) -> Optional[AnalysisHandle]:
        with self._lock:
            return self._handles.get(id(report))

    # --- Analysis ---

    def start_analysis(self, report: Report) -> AnalysisHandle:
        with self._lock:
            if report.state == ReportState.ANALYZING:
                raise AnalysisInProgressError(
                    "Report is already being analyzed", report.state
                )
            if not report.image_ref:
                raise MissingImageError("Report has no image attached", report.state)
            if report.state != ReportState.DRAFT:
                raise InvalidTransitionError(
                    f"Cannot analyze a report in state {report.state.value}", report.state
                )

            handle = AnalysisHandle(report)
            report.state = ReportState.ANALYZING
            report.last_error = None
            self._handles[id(report)] = handle
            logger.debug("Analysis started for %s", report.image_ref)
            return handle

    def complete_analysis(
        self,
        report: Report,
        result: DiagnosisResult,
        handle: Optional[AnalysisHandle] = None,
    ):
        """Attach the diagnosis. A cancelled analysis is failed instead."""
        if not isinstance(result, DiagnosisResult):
            raise TypeError(f"Expected DiagnosisResult, got {type(result).__name__}")

        with self._lock:
            current = self._require_analyzing(report, handle)
            if current is not None and current.cancelled:
                error = current.reason
                self._back_to_draft(report, error)
                raise error

            report.diagnosis = result
            report.state = ReportState.ANALYZED
            self._handles.pop(id(report), None)
            logger.info(
                "Analysis complete: %s (%.2f) -> %s",
                result.cancer_type.value, result.confidence, result.risk_level.value,
            )

    def fail_analysis(
        self,
        report: Report,
        error: Exception,
        handle: Optional[AnalysisHandle] = None,
    ) -> Exception:
        """Return the report to Draft and record the error. Returns the error."""
        with self._lock:
            self._require_analyzing(report, handle)
            self._back_to_draft(report, error)
            logger.warning("Analysis failed for %s: %s", report.image_ref, error)
            return error

    def _require_analyzing(self, report: Report, handle: Optional[AnalysisHandle]):
        if report.state != ReportState.ANALYZING:
            raise InvalidTransitionError(
                f"Report is not being analyzed (state {report.state.value})", report.state
            )
        current = self._handles.get(id(report))
        if handle is not None and handle is not current:
            raise InvalidTransitionError("Handle does not belong to the running analysis", report.state)
        return current

    def _back_to_draft(self, report: Report, error: Exception):
        report.state = ReportState.DRAFT
        report.last_error = error
        self._handles.pop(id(report), None)

    # --- Persistence and sharing ---

    def save(self, report: Report, thumbnail: bytes = b"") -> str:
        """Persist an analyzed report and return its ID.

        Saving an already persisted report updates it in place.
        """
        with self._lock:
            if report.diagnosis is None or report.state.rank < ReportState.ANALYZED.rank:
                raise NotAnalyzedError(
                    f"Cannot save a report in state {report.state.value}", report.state
                )

            if report.id:
                self._store.update(report)
                return report.id

            previous = report.state
            report.state = ReportState.SAVED
            try:
                if thumbnail:
                    report_id = self._store.save(report, thumbnail=thumbnail)
                else:
                    report_id = self._store.save(report)
            except Exception:
                report.state = previous
                raise
            if not report_id:
                report.state = previous
                raise ValueError("Report store returned an empty id")

            report.id = report_id
            logger.info("Report %s saved", report_id)
            return report_id

    def share(self, report: Report, doctor_ids: Iterable[str]):
        """Share with doctors. Repeated IDs are ignored."""
        if isinstance(doctor_ids, str):
            doctor_ids = [doctor_ids]
        requested = list(doctor_ids)
        if not requested or not all(isinstance(d, str) and d for d in requested):
            raise ValueError("doctor_ids must be a non-empty collection of non-empty strings")

        with self._lock:
            if not report.id or report.state.rank < ReportState.SAVED.rank:
                raise NotSavedError("Report must be saved before sharing", report.state)

            merged = list(report.shared_with_doctors)
            for doctor_id in requested:
                if doctor_id not in merged:
                    merged.append(doctor_id)

            previous = (list(report.shared_with_doctors), report.state)
            report.shared_with_doctors = merged
            if report.state.rank < ReportState.SHARED.rank:
                report.state = ReportState.SHARED
            try:
                self._store.update(report)
            except Exception:
                report.shared_with_doctors, report.state = previous
                raise
            logger.info("Report %s shared with %d doctor(s)", report.id, len(merged))

    def add_feedback(self, report: Report, text: str):
        if not text or not text.strip():
            raise ValueError("feedback text must not be empty")

        with self._lock:
            if not report.shared_with_doctors:
                raise NotSharedError("Report has not been shared with a doctor", report.state)

            previous = (report.doctor_feedback, report.state)
            report.doctor_feedback = text
            report.state = ReportState.FEEDBACK
            try:
                self._store.update(report)
            except Exception:
                report.doctor_feedback, report.state = previous
                raise
            logger.info("Feedback recorded on report %s", report.id)
