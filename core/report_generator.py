"""Report export for lesion screening reports: PDF, JSON, and plain text."""

import json
import logging
from datetime import datetime
from typing import Optional

from core.errors import NotAnalyzedError, ReportExportError
from core.risk_stratifier import (
    CANCER_TYPE_LABELS,
    RECOMMENDATIONS,
    RISK_LEVEL_COLORS,
    RISK_LEVEL_LABELS,
)
from core.utils import (
    CLASS_ORDER,
    DiagnosisResult,
    ProgressCallback,
    Report,
    format_confidence,
)

logger = logging.getLogger(__name__)

TOOL_NAME = "LesionScan"
TOOL_VERSION = "1.0.0"


def _require_diagnosis(report: Report) -> DiagnosisResult:
    if report.diagnosis is None:
        raise NotAnalyzedError("Cannot export a report without a diagnosis", report.state)
    return report.diagnosis


class ReportGenerator:
    """Generates exportable documents from screening reports."""

    def generate_pdf(
        self,
        report: Report,
        output_path: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """Generate a PDF report with diagnosis, class scores, and disclaimer."""
        from reportlab.lib import colors
        from reportlab.lib.pagesizes import A4
        from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
        from reportlab.lib.units import mm
        from reportlab.platypus import (
            Paragraph,
            SimpleDocTemplate,
            Spacer,
            Table,
            TableStyle,
        )

        diagnosis = _require_diagnosis(report)

        if on_progress:
            on_progress(1, 3, "Creating PDF layout...")

        doc = SimpleDocTemplate(
            output_path,
            pagesize=A4,
            leftMargin=20 * mm,
            rightMargin=20 * mm,
            topMargin=20 * mm,
            bottomMargin=20 * mm,
        )

        styles = getSampleStyleSheet()
        elements = []

        title_style = ParagraphStyle(
            "ReportTitle",
            parent=styles["Title"],
            fontSize=20,
            spaceAfter=6,
        )
        elements.append(Paragraph("LesionScan Skin Lesion Report", title_style))
        elements.append(Spacer(1, 4 * mm))

        disclaimer_style = ParagraphStyle(
            "Disclaimer",
            parent=styles["Normal"],
            fontSize=9,
            textColor=colors.HexColor("#92400E"),
            backColor=colors.HexColor("#FEF3C7"),
            borderColor=colors.HexColor("#F59E0B"),
            borderWidth=1,
            borderPadding=8,
            spaceBefore=4,
            spaceAfter=8,
        )
        elements.append(Paragraph(f"<b>WARNING:</b> {diagnosis.disclaimer}", disclaimer_style))
        elements.append(Spacer(1, 4 * mm))

        meta_style = ParagraphStyle("Meta", parent=styles["Normal"], fontSize=10, textColor=colors.grey)
        elements.append(Paragraph(f"Report ID: {report.id or 'unsaved'}", meta_style))
        elements.append(Paragraph(f"Created: {report.created_at}", meta_style))
        elements.append(Paragraph(f"Model: {diagnosis.model_name}", meta_style))
        elements.append(Paragraph(f"Processing Time: {diagnosis.processing_time_ms}ms", meta_style))
        elements.append(Spacer(1, 6 * mm))

        if on_progress:
            on_progress(2, 3, "Adding diagnosis...")

        risk_color = colors.HexColor(RISK_LEVEL_COLORS[diagnosis.risk_level])
        risk_style = ParagraphStyle(
            "Risk", parent=styles["Heading2"], textColor=risk_color,
        )
        elements.append(Paragraph(
            f"{CANCER_TYPE_LABELS[diagnosis.cancer_type]} - "
            f"{RISK_LEVEL_LABELS[diagnosis.risk_level]}",
            risk_style,
        ))
        elements.append(Paragraph(
            f"Confidence: {format_confidence(diagnosis.confidence)}", styles["Normal"]
        ))
        elements.append(Paragraph(RECOMMENDATIONS[diagnosis.risk_level], styles["Normal"]))
        elements.append(Spacer(1, 6 * mm))

        if diagnosis.scores:
            elements.append(Paragraph("Class Scores", styles["Heading2"]))
            table_data = [["Class", "Probability"]]
            for cancer_type in CLASS_ORDER:
                if cancer_type in diagnosis.scores:
                    table_data.append([
                        CANCER_TYPE_LABELS[cancer_type],
                        format_confidence(diagnosis.scores[cancer_type]),
                    ])

            table = Table(table_data, colWidths=[200, 100])
            table.setStyle(TableStyle([
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#4F46E5")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTSIZE", (0, 0), (-1, 0), 10),
                ("FONTSIZE", (0, 1), (-1, -1), 9),
                ("ALIGN", (1, 0), (-1, -1), "CENTER"),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#E5E7EB")),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F9FAFB")]),
                ("TOPPADDING", (0, 0), (-1, -1), 6),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ]))
            elements.append(table)
            elements.append(Spacer(1, 6 * mm))

        if report.shared_with_doctors:
            elements.append(Paragraph("Shared With", styles["Heading2"]))
            elements.append(Paragraph(", ".join(report.shared_with_doctors), styles["Normal"]))
        if report.doctor_feedback:
            elements.append(Paragraph("Doctor Feedback", styles["Heading2"]))
            elements.append(Paragraph(report.doctor_feedback, styles["Normal"]))

        footer_style = ParagraphStyle("Footer", parent=styles["Normal"], fontSize=8, textColor=colors.grey)
        elements.append(Spacer(1, 10 * mm))
        elements.append(Paragraph(f"Generated by {TOOL_NAME} {TOOL_VERSION}", footer_style))

        if on_progress:
            on_progress(3, 3, "Writing PDF...")

        try:
            doc.build(elements)
        except OSError as e:
            raise ReportExportError(f"Cannot write PDF to {output_path}: {e}") from e
        logger.info("PDF report written to %s", output_path)
        return output_path

    def generate_json(self, report: Report, output_path: str) -> str:
        """Generate a JSON export of the report."""
        diagnosis = _require_diagnosis(report)
        data = {
            "tool": TOOL_NAME,
            "version": TOOL_VERSION,
            "exported_at": datetime.now().isoformat(),
            "disclaimer": diagnosis.disclaimer,
            "report_id": report.id,
            "user_id": report.user_id,
            "image_ref": report.image_ref,
            "created_at": report.created_at,
            "state": report.state.value,
            "diagnosis": diagnosis.to_dict(),
            "recommendation": RECOMMENDATIONS[diagnosis.risk_level],
            "shared_with_doctors": list(report.shared_with_doctors),
            "doctor_feedback": report.doctor_feedback,
        }

        try:
            with open(output_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise ReportExportError(f"Cannot write JSON to {output_path}: {e}") from e
        return output_path

    def generate_txt(self, report: Report, output_path: str) -> str:
        """Generate a plain text report."""
        diagnosis = _require_diagnosis(report)
        lines = [
            "=" * 60,
            "LESIONSCAN SKIN LESION REPORT",
            "=" * 60,
            "",
            f"WARNING: {diagnosis.disclaimer}",
            "",
            f"Report ID: {report.id or 'unsaved'}",
            f"Created: {report.created_at}",
            f"Model: {diagnosis.model_name}",
            f"Processing Time: {diagnosis.processing_time_ms}ms",
            "",
            "-" * 40,
            "DIAGNOSIS",
            "-" * 40,
            f"  Classification: {CANCER_TYPE_LABELS[diagnosis.cancer_type]}",
            f"  Confidence: {format_confidence(diagnosis.confidence)}",
            f"  Risk: {RISK_LEVEL_LABELS[diagnosis.risk_level]}",
            f"  {RECOMMENDATIONS[diagnosis.risk_level]}",
            "",
        ]

        if diagnosis.scores:
            lines.extend(["-" * 40, "CLASS SCORES", "-" * 40])
            for cancer_type in CLASS_ORDER:
                if cancer_type in diagnosis.scores:
                    pct = format_confidence(diagnosis.scores[cancer_type])
                    lines.append(f"  {CANCER_TYPE_LABELS[cancer_type]}: {pct}")
            lines.append("")

        if report.shared_with_doctors:
            lines.append(f"Shared with: {', '.join(report.shared_with_doctors)}")
        if report.doctor_feedback:
            lines.append(f"Doctor feedback: {report.doctor_feedback}")

        lines.extend(["", f"Generated by {TOOL_NAME} {TOOL_VERSION}"])

        try:
            with open(output_path, "w", encoding="utf-8") as f:
                f.write("\n".join(lines))
        except OSError as e:
            raise ReportExportError(f"Cannot write text report to {output_path}: {e}") from e
        return output_path
