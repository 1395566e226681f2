"""PhytoScan: Cercospora leaf spot diagnosis for kangkung leaves.

Command-line entry point:
    phytoscan leaf.jpg                      # diagnose with the configured classifier
    phytoscan leaf.jpg --classifier remote  # ask the vision oracle
    phytoscan leaf.jpg --report out.txt     # also write a treatment report
    phytoscan --history                     # list past diagnoses
"""

import argparse
import logging
import sys

from core.config import CLASSIFIERS, load_config
from core.utils import ClassificationError, format_file_size, validate_leaf_image

logger = logging.getLogger("phytoscan")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="phytoscan", description="Diagnose Cercospora leaf spot from a leaf photo."
    )
    parser.add_argument("image", nargs="?", help="Path to a leaf photograph")
    parser.add_argument("--classifier", choices=CLASSIFIERS, default=None,
                        help="Override the configured classifier")
    parser.add_argument("--report", default=None,
                        help="Write a report to this path (.json or .txt)")
    parser.add_argument("--history", action="store_true", help="List past diagnoses")
    parser.add_argument("--clear-history", action="store_true", help="Delete all past diagnoses")
    parser.add_argument("--no-save", action="store_true", help="Do not record this diagnosis")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def print_history(ledger):
    items = ledger.list()
    if not items:
        print("No diagnoses recorded yet.")
        return
    for item in items:
        print(f"{item.timestamp}  {item.stage.value}  {item.severity_score:5.1f}  "
              f"{item.confidence * 100:5.1f}%  {item.disease_name}")


def print_result(result):
    print(f"Stage:      {result.stage.value} - {result.disease.name}")
    print(f"Confidence: {result.confidence * 100:.1f}%")
    print(f"Severity:   {result.severity_display} / 100")
    print(f"Lesions:    {result.lesion_count}")
    print(f"Reasoning:  {result.reasoning}")
    if result.quality and result.quality.issues():
        print(f"Quality:    {', '.join(result.quality.issues())}")
    print("Immediate actions:")
    for action in result.disease.treatment.immediate:
        print(f"  - {action}")


def main(argv=None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    import requests

    from core.classifier import create_classifier
    from core.diagnosis_engine import DiagnosisEngine
    from core.history_ledger import HistoryLedger
    from core.history_store import SQLiteHistoryStore

    config = load_config()
    if args.classifier:
        config.classifier = args.classifier

    ledger = HistoryLedger(
        SQLiteHistoryStore(),
        capacity=config.history_capacity,
        record_invalid_diagnoses=config.record_invalid_diagnoses,
    )

    if args.clear_history:
        print(f"Deleted {ledger.clear()} entries.")
        return 0
    if args.history:
        print_history(ledger)
        return 0
    if not args.image:
        build_parser().print_usage()
        return 2

    validation = validate_leaf_image(args.image)
    if not validation.valid:
        logger.error("%s: %s", args.image, validation.error_message)
        return 1
    logger.debug("%s: %dx%d, %s", args.image, validation.image_width,
                 validation.image_height, format_file_size(validation.file_size_bytes))

    with requests.Session() as session:
        engine = DiagnosisEngine(
            create_classifier(config, session=session),
            ledger=None if args.no_save else ledger,
        )
        try:
            result = engine.diagnose(args.image)
        except ClassificationError as e:
            logger.error("Diagnosis failed (%s): %s", e.kind.value, e.message)
            return 1

    print_result(result)

    if args.report:
        from core.report_generator import ReportGenerator
        generator = ReportGenerator()
        if args.report.lower().endswith(".json"):
            ok = generator.generate_json(result, args.report)
        else:
            ok = generator.generate_txt(result, args.report)
        if not ok:
            return 1
        print(f"Report written to {args.report}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
