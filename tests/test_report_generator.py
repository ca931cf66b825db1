"""Tests for core.report_generator module."""

import json
from pathlib import Path

import pytest

from core.errors import NotAnalyzedError, ReportExportError
from core.report_generator import ReportGenerator
from core.utils import Report


@pytest.fixture
def shared_report(analyzed_report):
    analyzed_report.id = "abc123"
    analyzed_report.shared_with_doctors = ["doc1"]
    analyzed_report.doctor_feedback = "Please book a biopsy."
    return analyzed_report


class TestGenerateJson:
    def test_json_structure(self, tmp_dir, shared_report):
        output = str(tmp_dir / "report.json")
        assert ReportGenerator().generate_json(shared_report, output) == output

        with open(output) as f:
            data = json.load(f)

        assert data["tool"] == "LesionScan"
        assert data["report_id"] == "abc123"
        assert data["diagnosis"]["cancer_type"] == "melanoma"
        assert data["diagnosis"]["risk_level"] == "very_high"
        assert data["diagnosis"]["confidence"] == 0.92
        assert data["shared_with_doctors"] == ["doc1"]
        assert data["doctor_feedback"] == "Please book a biopsy."
        assert "NOT a diagnosis" in data["disclaimer"]

    def test_requires_diagnosis(self, tmp_dir):
        report = Report(user_id="u1", image_ref="/img.png")
        with pytest.raises(NotAnalyzedError):
            ReportGenerator().generate_json(report, str(tmp_dir / "r.json"))

    def test_unwritable_path(self, tmp_dir, shared_report):
        with pytest.raises(ReportExportError):
            ReportGenerator().generate_json(shared_report, str(tmp_dir / "missing" / "r.json"))


class TestGenerateTxt:
    def test_contains_diagnosis(self, tmp_dir, shared_report):
        output = str(tmp_dir / "report.txt")
        ReportGenerator().generate_txt(shared_report, output)

        content = Path(output).read_text()
        assert "LESIONSCAN" in content
        assert "Melanoma" in content
        assert "92.0%" in content
        assert "Very High Risk" in content
        assert "doc1" in content
        assert "not a diagnosis" in content.lower()


class TestGeneratePdf:
    def test_pdf_magic_bytes(self, tmp_dir, shared_report):
        output = str(tmp_dir / "report.pdf")
        ReportGenerator().generate_pdf(shared_report, output)
        with open(output, "rb") as f:
            assert f.read(4) == b"%PDF"

    def test_progress_callback(self, tmp_dir, shared_report):
        steps = []
        ReportGenerator().generate_pdf(
            shared_report, str(tmp_dir / "report.pdf"),
            on_progress=lambda s, t, m: steps.append((s, t, m)),
        )
        assert len(steps) == 3
