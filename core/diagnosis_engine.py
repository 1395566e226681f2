"""Diagnosis pipeline: decode, quality check, classify, score, record.

A result reaches the history ledger only after classification and scoring
both succeed. Errors and cancellations propagate to the caller and leave the
ledger untouched.
"""

import logging
import math
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import numpy as np

from core.classifier import Classifier
from core.disease_database import lookup
from core.history_ledger import HistoryLedger
from core.image_preprocessor import ImagePreprocessor, LeafImage
from core.image_quality import analyze_image_quality
from core.severity_scorer import calculate_severity
from core.utils import (
    AnalysisCancelled,
    AnalysisResult,
    CancelCheck,
    ProgressCallback,
)

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, bytes, np.ndarray, LeafImage]


def _finite_or_zero(value) -> float:
    value = float(value)
    return value if math.isfinite(value) and value > 0 else 0.0


class DiagnosisEngine:
    """Runs one diagnosis per ``diagnose`` call.

    The classifier and ledger are built by the caller and passed in; the
    engine owns neither.
    """

    TOTAL_STEPS = 5

    def __init__(self, classifier: Classifier, ledger: Optional[HistoryLedger] = None):
        self._classifier = classifier
        self._ledger = ledger

    @property
    def classifier(self) -> Classifier:
        return self._classifier

    @property
    def ledger(self) -> Optional[HistoryLedger]:
        return self._ledger

    def diagnose(
        self,
        source: ImageSource,
        on_progress: Optional[ProgressCallback] = None,
        is_cancelled: Optional[CancelCheck] = None,
    ) -> AnalysisResult:
        """Diagnose a leaf photo and record it in the ledger.

        Raises ClassificationError if the image cannot be decoded or the
        classifier fails, and AnalysisCancelled if ``is_cancelled`` turns true
        before the result is committed.
        """
        start_time = time.time()

        def report(step, msg):
            if on_progress:
                on_progress(step, self.TOTAL_STEPS, msg)

        def check_cancelled():
            if is_cancelled and is_cancelled():
                logger.info("Diagnosis cancelled")
                raise AnalysisCancelled()

        # Step 1: Decode
        report(1, "Loading leaf image...")
        check_cancelled()
        image = self._load(source)

        # Step 2: Image quality (advisory)
        report(2, "Checking image quality...")
        check_cancelled()
        quality = analyze_image_quality(image.pixels, image.width, image.height)
        if quality.issues():
            logger.info("Image quality issues: %s", ", ".join(quality.issues()))

        # Step 3: Classify
        report(3, "Classifying disease stage...")
        check_cancelled()
        classification = self._classifier.classify(image, is_cancelled=is_cancelled)

        # Step 4: Score and assemble
        report(4, "Scoring severity...")
        severity = calculate_severity(
            classification.stage,
            classification.lesion_count,
            classification.avg_lesion_size,
        )
        result = AnalysisResult(
            id=str(uuid.uuid4()),
            stage=classification.stage,
            confidence=min(_finite_or_zero(classification.confidence), 1.0),
            lesion_count=int(_finite_or_zero(classification.lesion_count)),
            avg_lesion_size=_finite_or_zero(classification.avg_lesion_size),
            severity_score=severity,
            timestamp=datetime.now().isoformat(),
            reasoning=classification.reasoning,
            detected_symptoms=tuple(classification.detected_symptoms),
            visual_evidence_regions=classification.visual_evidence_regions,
            disease=lookup(classification.stage),
            quality=quality,
            classifier_name=self._classifier.NAME,
            processing_time_ms=int((time.time() - start_time) * 1000),
        )

        # Step 5: Commit
        report(5, "Saving to history...")
        check_cancelled()
        if self._ledger is not None:
            self._ledger.append(result)

        logger.info(
            "Diagnosed %s as %s (confidence %.2f, severity %s) in %d ms",
            image.source or "image", result.stage.value, result.confidence,
            result.severity_display, result.processing_time_ms,
        )
        return result

    @staticmethod
    def _load(source: ImageSource) -> LeafImage:
        if isinstance(source, LeafImage):
            return source
        if isinstance(source, np.ndarray):
            return ImagePreprocessor.from_array(source)
        return ImagePreprocessor.load(source)
