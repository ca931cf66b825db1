"""Caller-facing screening pipeline.

Decode and inference run on a worker thread pool so the caller is never
blocked by the model; the caller waits on a Future or uses the blocking
helpers. Every failure is raised to the caller as a typed error.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Dict, Iterable, Optional, Tuple

from core.errors import (
    AnalysisCancelledError,
    AnalysisTimeoutError,
    ClosedResourceError,
    ImageError,
    InvalidTransitionError,
)
from core.image_preprocessor import ImagePreprocessor
from core.inference_engine import InferenceEngine
from core.report_lifecycle import AnalysisHandle, ReportLifecycle
from core.report_store import ReportStore
from core.risk_stratifier import RiskStratifier
from core.utils import (
    CancelCheck,
    DiagnosisResult,
    ProgressCallback,
    Report,
    ScreeningConfig,
)

logger = logging.getLogger(__name__)


class ScreeningPipeline:
    """Classifies lesion images and manages the resulting reports."""

    def __init__(
        self,
        config: Optional[ScreeningConfig] = None,
        engine: Optional[InferenceEngine] = None,
        store=None,
    ):
        self._config = config or ScreeningConfig()
        self._engine = engine or InferenceEngine(model_name=self._config.model_name)
        self._store = store if store is not None else ReportStore()
        self._lifecycle = ReportLifecycle(self._store)
        self._stratifier = RiskStratifier(self._config.low_confidence_threshold)
        self._executor = ThreadPoolExecutor(
            max_workers=self._config.max_workers,
            thread_name_prefix="lesionscan-analysis",
        )
        self._futures: Dict[AnalysisHandle, Future] = {}
        self._lock = threading.Lock()
        # Serializes load-modify-update of stored reports
        self._update_lock = threading.Lock()
        self._closed = False

    @property
    def config(self) -> ScreeningConfig:
        return self._config

    @property
    def engine(self) -> InferenceEngine:
        return self._engine

    @property
    def lifecycle(self) -> ReportLifecycle:
        return self._lifecycle

    # --- Classification ---

    def classify_image(self, image_ref: str, timeout: Optional[float] = None) -> DiagnosisResult:
        """Classify one image without creating a report."""
        future = self._submit(self._diagnose, image_ref)
        try:
            return future.result(timeout=self._timeout(timeout))
        except FuturesTimeoutError:
            future.cancel()
            raise AnalysisTimeoutError(f"Classification of {image_ref} timed out") from None

    def _diagnose(
        self,
        image_ref: str,
        is_cancelled: Optional[CancelCheck] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> DiagnosisResult:
        start_time = time.time()

        def report(step, total, msg):
            if on_progress:
                on_progress(step, total, msg)

        def check_cancelled():
            if is_cancelled and is_cancelled():
                raise AnalysisCancelledError("Analysis cancelled.")

        # Step 1: Preprocess image
        report(1, 3, "Preprocessing lesion image...")
        check_cancelled()
        tensor = ImagePreprocessor.prepare(image_ref)

        # Step 2: Run inference
        report(2, 3, "Analyzing lesion...")
        check_cancelled()
        self._ensure_engine_open()
        scores = self._engine.classify(tensor)

        # Step 3: Apply risk policy
        report(3, 3, "Assessing risk...")
        check_cancelled()
        elapsed_ms = int((time.time() - start_time) * 1000)
        return self._stratifier.diagnose(scores, self._engine.model_name, elapsed_ms)

    # --- Reports ---

    def create_report(self, user_id: str, image_ref: str) -> Report:
        return self._lifecycle.create(user_id, image_ref)

    def submit_analysis(
        self,
        report: Report,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Tuple[AnalysisHandle, Future]:
        """Start analyzing a report in the background.

        The future resolves to the DiagnosisResult, or raises the typed
        failure after the report has been returned to Draft.
        """
        handle = self._lifecycle.start_analysis(report)

        def task() -> DiagnosisResult:
            try:
                result = self._diagnose(report.image_ref, lambda: handle.cancelled, on_progress)
            except AnalysisCancelledError as e:
                error = handle.reason or e
                self._settle_failure(report, handle, error)
                raise error from None
            except Exception as e:
                self._settle_failure(report, handle, e)
                raise
            try:
                self._lifecycle.complete_analysis(report, result, handle)
            except InvalidTransitionError:
                if handle.cancelled:
                    raise handle.reason from None
                raise
            return result

        try:
            future = self._submit(task)
        except ClosedResourceError as e:
            self._lifecycle.fail_analysis(report, e, handle)
            raise

        with self._lock:
            self._futures[handle] = future
        future.add_done_callback(lambda _f: self._forget(handle))
        return handle, future

    def analyze(
        self,
        report: Report,
        timeout: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> DiagnosisResult:
        """Analyze a report and wait for the diagnosis."""
        handle, future = self.submit_analysis(report, on_progress)
        try:
            return future.result(timeout=self._timeout(timeout))
        except FuturesTimeoutError:
            error = AnalysisTimeoutError(f"Analysis of {report.image_ref} timed out")
            if self._abandon(handle, future, error):
                raise error from None
            # The task settled while we were timing out
            return future.result()

    def cancel_analysis(self, handle: AnalysisHandle):
        """Cancel an analysis; its result will be discarded."""
        with self._lock:
            future = self._futures.get(handle)
        if future is None:
            handle.cancel()
            return
        self._abandon(handle, future, AnalysisCancelledError("Analysis cancelled."))

    def _abandon(self, handle: AnalysisHandle, future: Future, error: Exception) -> bool:
        """Cancel a running analysis and return its report to Draft.

        The worker settles with ``error`` whichever side wins the race.
        Returns False if the analysis had already settled.
        """
        handle.cancel(error)
        future.cancel()
        try:
            self._lifecycle.fail_analysis(handle.report, error, handle)
        except InvalidTransitionError:
            return False
        return True

    def _settle_failure(self, report: Report, handle: AnalysisHandle, error: Exception):
        try:
            self._lifecycle.fail_analysis(report, error, handle)
        except InvalidTransitionError:
            # Already abandoned by a timeout or cancel
            logger.debug("Discarding late failure for %s: %s", report.image_ref, error)

    def save_report(self, report: Report) -> str:
        thumbnail = b""
        if self._config.generate_thumbnail and not report.id:
            try:
                thumbnail = ImagePreprocessor.create_thumbnail(report.image_ref)
            except ImageError as e:
                logger.warning("Saving report without thumbnail: %s", e)
        return self._lifecycle.save(report, thumbnail)

    def load_report(self, report_id: str) -> Report:
        return self._store.load(report_id)

    def share_report(self, report_id: str, doctor_ids: Iterable[str]) -> Report:
        with self._update_lock:
            report = self._store.load(report_id)
            self._lifecycle.share(report, doctor_ids)
        return report

    def add_feedback(self, report_id: str, text: str) -> Report:
        with self._update_lock:
            report = self._store.load(report_id)
            self._lifecycle.add_feedback(report, text)
        return report

    # --- Resources ---

    def close(self):
        """Cancel pending work, drain the worker pool, then release the model."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending = list(self._futures.items())

        for handle, future in pending:
            if future.cancel():
                self._abandon(handle, future, AnalysisCancelledError("Pipeline closed."))
            else:
                handle.cancel()

        self._executor.shutdown(wait=True)
        self._engine.close()
        logger.info("Screening pipeline closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _ensure_engine_open(self):
        if self._closed:
            raise ClosedResourceError("Screening pipeline is closed")
        self._engine.open()

    def _submit(self, fn, *args) -> Future:
        with self._lock:
            if self._closed:
                raise ClosedResourceError("Screening pipeline is closed")
            return self._executor.submit(fn, *args)

    def _forget(self, handle: AnalysisHandle):
        with self._lock:
            self._futures.pop(handle, None)

    def _timeout(self, timeout: Optional[float]) -> Optional[float]:
        return timeout if timeout is not None else self._config.analysis_timeout_s
