"""Tests for the Qt background workers."""

import json

import pytest

pytest.importorskip("PyQt6")

from PyQt6.QtCore import QCoreApplication

from core.errors import DecodeError
from core.utils import CancerType, ReportState
from workers.analysis_worker import AnalysisWorker
from workers.report_worker import ReportWorker


@pytest.fixture(scope="module", autouse=True)
def qt_app():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


class TestAnalysisWorker:
    def test_emits_result(self, pipeline, sample_lesion_image):
        report = pipeline.create_report("u1", sample_lesion_image)
        worker = AnalysisWorker(pipeline, report)
        results, errors, steps = [], [], []
        worker.finished.connect(results.append)
        worker.error.connect(errors.append)
        worker.progress.connect(lambda s, t, m: steps.append(s))

        worker.run()

        assert errors == []
        assert results[0].cancer_type == CancerType.MELANOMA
        assert steps == [1, 2, 3]
        assert report.state == ReportState.ANALYZED

    def test_emits_typed_error(self, pipeline, corrupt_image):
        report = pipeline.create_report("u1", corrupt_image)
        worker = AnalysisWorker(pipeline, report)
        results, errors = [], []
        worker.finished.connect(results.append)
        worker.error.connect(errors.append)

        worker.run()

        assert results == []
        assert isinstance(errors[0], DecodeError)
        assert report.state == ReportState.DRAFT

    def test_cancel_before_run_discards_output(self, pipeline, sample_lesion_image):
        report = pipeline.create_report("u1", sample_lesion_image)
        worker = AnalysisWorker(pipeline, report)
        results, errors = [], []
        worker.finished.connect(results.append)
        worker.error.connect(errors.append)

        worker.cancel()
        worker.run()

        assert results == []
        assert errors == []
        assert report.state == ReportState.DRAFT
        assert report.diagnosis is None


class TestReportWorker:
    def test_json_export(self, tmp_dir, analyzed_report):
        output = str(tmp_dir / "report.json")
        worker = ReportWorker(analyzed_report, output, format="json")
        done = []
        worker.finished.connect(done.append)

        worker.run()

        assert done == [output]
        with open(output) as f:
            assert json.load(f)["diagnosis"]["cancer_type"] == "melanoma"

    def test_unknown_format(self, tmp_dir, analyzed_report):
        worker = ReportWorker(analyzed_report, str(tmp_dir / "r.doc"), format="doc")
        errors = []
        worker.error.connect(errors.append)

        worker.run()

        assert isinstance(errors[0], ValueError)
