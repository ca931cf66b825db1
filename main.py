"""LesionScan: preliminary skin lesion risk screening.

Command-line entry point: classifies a lesion photograph, saves the report,
optionally shares it with doctors and exports it.
"""

import argparse
import logging
import sys
from pathlib import Path

from core.errors import LesionScanError
from core.pipeline import ScreeningPipeline
from core.report_generator import ReportGenerator
from core.risk_stratifier import CANCER_TYPE_LABELS, RECOMMENDATIONS, RISK_LEVEL_LABELS
from core.utils import ScreeningConfig, format_confidence

logger = logging.getLogger("lesionscan")

EXPORT_FORMATS = {".pdf": "pdf", ".json": "json", ".txt": "txt"}


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Preliminary skin lesion risk screening")
    parser.add_argument("image", help="Path to the lesion photograph")
    parser.add_argument("--user", required=True, help="Owner of the report")
    parser.add_argument("--model", default=None, help="Registered model name")
    parser.add_argument("--timeout", type=float, default=None, help="Analysis timeout in seconds")
    parser.add_argument("--share", nargs="*", default=[], metavar="DOCTOR_ID",
                        help="Doctor IDs to share the saved report with")
    parser.add_argument("--export", default=None, help="Export path (.pdf, .json or .txt)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)
    if args.export and Path(args.export).suffix.lower() not in EXPORT_FORMATS:
        parser.error(f"unsupported export format: {args.export} (use .pdf, .json or .txt)")
    return args


def export_report(report, output_path: str) -> str:
    fmt = EXPORT_FORMATS.get(Path(output_path).suffix.lower())
    if fmt is None:
        raise ValueError(f"Unsupported export format: {output_path}")
    generator = ReportGenerator()
    if fmt == "pdf":
        return generator.generate_pdf(report, output_path)
    if fmt == "json":
        return generator.generate_json(report, output_path)
    return generator.generate_txt(report, output_path)


def main(argv=None) -> int:
    """Application entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = ScreeningConfig.from_env()
        if args.model:
            config.model_name = args.model
        if args.timeout is not None:
            config.analysis_timeout_s = args.timeout

        with ScreeningPipeline(config) as pipeline:
            report = pipeline.create_report(args.user, args.image)
            diagnosis = pipeline.analyze(report)
            report_id = pipeline.save_report(report)
            if args.share:
                report = pipeline.share_report(report_id, args.share)
            if args.export:
                export_report(report, args.export)
    except LesionScanError as e:
        retry = " (retry with the same or another image)" if e.retryable else ""
        logger.error("%s: %s%s", type(e).__name__, e, retry)
        return 1

    print(f"Report:         {report_id}")
    print(f"Classification: {CANCER_TYPE_LABELS[diagnosis.cancer_type]}")
    print(f"Confidence:     {format_confidence(diagnosis.confidence)}")
    print(f"Risk:           {RISK_LEVEL_LABELS[diagnosis.risk_level]}")
    print(RECOMMENDATIONS[diagnosis.risk_level])
    print(diagnosis.disclaimer)
    return 0


if __name__ == "__main__":
    sys.exit(main())
