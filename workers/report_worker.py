"""Background worker for report export."""

from PyQt6.QtCore import QThread, pyqtSignal

from core.report_generator import ReportGenerator
from core.utils import Report


class ReportWorker(QThread):
    """Exports a report in a background thread."""

    progress = pyqtSignal(int, int, str)
    finished = pyqtSignal(str)            # output_path
    error = pyqtSignal(object)

    def __init__(self, report: Report, output_path: str, format: str = "pdf", parent=None):
        super().__init__(parent)
        self._report = report
        self._output_path = output_path
        self._format = format

    def run(self):
        generator = ReportGenerator()
        try:
            if self._format == "pdf":
                path = generator.generate_pdf(
                    self._report, self._output_path,
                    on_progress=lambda s, t, m: self.progress.emit(s, t, m),
                )
            elif self._format == "json":
                path = generator.generate_json(self._report, self._output_path)
            elif self._format == "txt":
                path = generator.generate_txt(self._report, self._output_path)
            else:
                self.error.emit(ValueError(f"Unknown format: {self._format}"))
                return
        except Exception as e:
            self.error.emit(e)
            return
        self.finished.emit(path)
