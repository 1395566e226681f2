"""Report generation for diagnosis results: JSON and plain text."""

import json
import logging
from datetime import datetime

from core.utils import AnalysisResult

logger = logging.getLogger(__name__)

TOOL_NAME = "PhytoScan"
TOOL_VERSION = "1.0.0"
DISCLAIMER = (
    "This is a field screening aid, not a laboratory diagnosis. "
    "Confirm severe cases with a local agricultural extension officer."
)

CATEGORY_TITLES = {
    "immediate": "Immediate actions",
    "preventive": "Prevention",
    "cultural": "Cultural practices",
    "chemical": "Chemical control",
    "nutritional": "Nutrition",
    "recovery": "Recovery",
    "photography_tips": "Photography tips",
    "tips": "Tips",
}


class ReportGenerator:
    """Generates exportable reports from diagnosis results."""

    def generate_json(self, result: AnalysisResult, output_path: str) -> bool:
        """Generate a JSON export of the diagnosis and treatment plan."""
        try:
            disease = result.disease
            data = {
                "tool": TOOL_NAME,
                "version": TOOL_VERSION,
                "generated_at": datetime.now().isoformat(),
                "disclaimer": DISCLAIMER,
                "id": result.id,
                "timestamp": result.timestamp,
                "classifier": result.classifier_name,
                "stage": result.stage.value,
                "disease_name": disease.name,
                "confidence": result.confidence,
                "lesion_count": result.lesion_count,
                "avg_lesion_size_mm": result.avg_lesion_size,
                "severity_score": result.severity_display,
                "reasoning": result.reasoning,
                "detected_symptoms": list(result.detected_symptoms),
                "visual_evidence_regions": result.visual_evidence_regions,
                "quality_issues": result.quality.issues() if result.quality else None,
                "treatment": {
                    name: list(actions) for name, actions in disease.treatment.categories()
                },
                "prognosis": disease.prognosis,
            }

            with open(output_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            return True

        except (OSError, TypeError, ValueError) as e:
            logger.error("JSON report failed: %s", e)
            return False

    def generate_txt(self, result: AnalysisResult, output_path: str) -> bool:
        """Generate a plain text report."""
        try:
            disease = result.disease
            lines = [
                "=" * 60,
                "PHYTOSCAN LEAF DIAGNOSIS REPORT",
                "=" * 60,
                "",
                f"WARNING: {DISCLAIMER}",
                "",
                f"Stage: {result.stage.value} - {disease.name}",
                f"Confidence: {result.confidence * 100:.1f}%",
                f"Severity Score: {result.severity_display} / 100",
                f"Lesions: {result.lesion_count} (avg {result.avg_lesion_size:.1f} mm)",
                f"Classifier: {result.classifier_name}",
                f"Date: {result.timestamp}",
                "",
                "-" * 40,
                "ANALYSIS",
                "-" * 40,
                result.reasoning,
                "",
            ]

            if result.detected_symptoms:
                for symptom in result.detected_symptoms:
                    lines.append(f"  - {symptom}")
                lines.append("")
            if result.visual_evidence_regions:
                lines.append(f"Evidence: {result.visual_evidence_regions}")
                lines.append("")

            if result.quality and result.quality.issues():
                issues = ", ".join(name.replace("_", " ") for name in result.quality.issues())
                lines.append(f"Image quality issues: {issues}")
                lines.append("")

            lines.extend(["-" * 40, "TREATMENT", "-" * 40])
            for name, actions in disease.treatment.categories():
                lines.append(f"{CATEGORY_TITLES[name]}:")
                for action in actions:
                    lines.append(f"  * {action}")
                lines.append("")

            if disease.prognosis:
                lines.extend(["Prognosis: " + disease.prognosis, ""])

            lines.append(f"Generated by {TOOL_NAME} {TOOL_VERSION}")

            with open(output_path, "w", encoding="utf-8") as f:
                f.write("\n".join(lines))
            return True

        except OSError as e:
            logger.error("Text report failed: %s", e)
            return False
