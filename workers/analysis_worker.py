"""Background worker that runs one lesion analysis for a Qt caller."""

from PyQt6.QtCore import QThread, pyqtSignal

from core.pipeline import ScreeningPipeline
from core.utils import Report


class AnalysisWorker(QThread):
    """Runs ScreeningPipeline.analyze off the GUI thread."""

    progress = pyqtSignal(int, int, str)  # step, total, message
    finished = pyqtSignal(object)          # DiagnosisResult
    error = pyqtSignal(object)             # typed LesionScanError

    def __init__(self, pipeline: ScreeningPipeline, report: Report, parent=None):
        super().__init__(parent)
        self._pipeline = pipeline
        self._report = report
        self._cancelled = False

    def run(self):
        if self._cancelled:
            return
        try:
            result = self._pipeline.analyze(self._report, on_progress=self._on_progress)
        except Exception as e:
            if not self._cancelled:
                self.error.emit(e)
            return
        if not self._cancelled:
            self.finished.emit(result)

    def cancel(self):
        """Request cancellation of the analysis; its result is discarded."""
        self._cancelled = True
        handle = self._pipeline.lifecycle.active_handle(self._report)
        if handle is not None:
            self._pipeline.cancel_analysis(handle)

    def _on_progress(self, step: int, total: int, message: str):
        if not self._cancelled:
            self.progress.emit(step, total, message)
