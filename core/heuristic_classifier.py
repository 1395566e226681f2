"""Offline stage classification from leaf-pixel color ratios.

The photo is shrunk to a fixed square grid. Green-dominant pixels are leaf
tissue; among those, pixels that have lost green dominance (browning) or are
near-black (dead tissue) are necrotic. The necrotic share of leaf tissue picks
the stage. No I/O, no randomness: identical pixels give identical results.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from core.classifier import Classifier
from core.config import HeuristicThresholds
from core.image_preprocessor import ImagePreprocessor, LeafImage
from core.utils import AnalysisCancelled, CancelCheck, Classification, DiseaseStage

logger = logging.getLogger(__name__)

REASONING = {
    DiseaseStage.HEALTHY: "Optical analysis shows healthy chlorophyll density across leaf tissue.",
    DiseaseStage.EARLY: "Minor pigment disruption detected. Early lesion formation is probable.",
    DiseaseStage.MID: "Clustered necrotic regions observed. Infection is in the expansion phase.",
    DiseaseStage.SEVERE: "High density of necrotic pixels detected. Critical tissue failure confirmed.",
    DiseaseStage.INVALID: "Insufficient green tissue detected. Image may be obscured or too far away.",
}

# Midpoints of the lesion size ranges in the disease database, in mm.
ASSUMED_LESION_SIZE_MM = {
    DiseaseStage.EARLY: 2.0,
    DiseaseStage.MID: 8.5,
    DiseaseStage.SEVERE: 12.0,
}


@dataclass(frozen=True)
class PixelSurvey:
    """Pixel counts from one pass over the downsampled grid."""
    total_pixels: int
    leaf_pixels: int
    necrotic_pixels: int
    necrotic_centroid: Optional[tuple] = None  # (row, col) as fractions of the grid

    @property
    def necrotic_ratio(self) -> float:
        if self.leaf_pixels == 0:
            return 0.0
        return self.necrotic_pixels / self.leaf_pixels


def survey_pixels(grid: np.ndarray, thresholds: HeuristicThresholds) -> PixelSurvey:
    """Count leaf and necrotic pixels in an (H, W, 3|4) grid."""
    rgb = grid[..., :3].astype(np.float64)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]

    leaf = (g > r) & (g > b) & (g > thresholds.green_min)
    browning = r > thresholds.necrotic_red_factor * g
    dark = (
        (r < thresholds.necrotic_dark_max)
        & (g < thresholds.necrotic_dark_max)
        & (b < thresholds.necrotic_dark_max)
    )
    necrotic = leaf & (browning | dark)

    centroid = None
    necrotic_count = int(np.count_nonzero(necrotic))
    if necrotic_count:
        rows, cols = np.nonzero(necrotic)
        centroid = (
            float(rows.mean() + 0.5) / necrotic.shape[0],
            float(cols.mean() + 0.5) / necrotic.shape[1],
        )

    return PixelSurvey(
        total_pixels=int(leaf.size),
        leaf_pixels=int(np.count_nonzero(leaf)),
        necrotic_pixels=necrotic_count,
        necrotic_centroid=centroid,
    )


def stage_from_survey(survey: PixelSurvey, thresholds: HeuristicThresholds) -> DiseaseStage:
    """Map a survey to a stage by the area gate, then the ratio bands."""
    if survey.leaf_pixels < thresholds.min_leaf_pixels:
        return DiseaseStage.INVALID
    ratio = survey.necrotic_ratio
    if ratio > thresholds.severe_ratio:
        return DiseaseStage.SEVERE
    elif ratio > thresholds.mid_ratio:
        return DiseaseStage.MID
    elif ratio > thresholds.early_ratio:
        return DiseaseStage.EARLY
    return DiseaseStage.HEALTHY


def _describe_region(centroid: Optional[tuple]) -> str:
    if centroid is None:
        return "No necrotic regions detected"
    row, col = centroid
    vertical = "upper" if row < 1 / 3 else "lower" if row > 2 / 3 else "middle"
    horizontal = "left" if col < 1 / 3 else "right" if col > 2 / 3 else "center"
    if vertical == "middle" and horizontal == "center":
        return "Necrotic pixels concentrated near the center of the frame"
    return f"Necrotic pixels concentrated in the {vertical}-{horizontal} area of the frame"


class LocalHeuristicClassifier(Classifier):
    """Deterministic pixel-ratio classifier. Runs fully offline."""

    NAME = "local-heuristic"

    def __init__(self, thresholds: Optional[HeuristicThresholds] = None):
        self._thresholds = thresholds or HeuristicThresholds()

    @property
    def thresholds(self) -> HeuristicThresholds:
        return self._thresholds

    def classify(
        self, image: LeafImage, is_cancelled: Optional[CancelCheck] = None
    ) -> Classification:
        """Classify a leaf image from its downsampled pixel survey."""
        if is_cancelled and is_cancelled():
            raise AnalysisCancelled()

        grid = ImagePreprocessor.downsample(image, self._thresholds.grid_size)
        return self.classify_grid(grid)

    def classify_grid(self, grid: np.ndarray) -> Classification:
        """Classify an already downsampled grid."""
        t = self._thresholds
        survey = survey_pixels(grid, t)
        stage = stage_from_survey(survey, t)

        logger.debug(
            "Pixel survey: leaf=%d necrotic=%d ratio=%.4f -> %s",
            survey.leaf_pixels, survey.necrotic_pixels, survey.necrotic_ratio, stage.value,
        )

        confidence = t.invalid_confidence if stage == DiseaseStage.INVALID else t.confidence
        # Half-up rounding, so 2.5 lesions counts as 3.
        lesion_count = int(survey.necrotic_pixels / t.pixels_per_lesion + 0.5)

        symptoms = [
            f"Leaf tissue covers {survey.leaf_pixels / survey.total_pixels:.1%} of the frame",
        ]
        if survey.necrotic_pixels:
            symptoms.append(
                f"Necrotic discoloration in {survey.necrotic_ratio:.1%} of leaf tissue"
            )
        else:
            symptoms.append("No necrotic discoloration in leaf tissue")

        return Classification(
            stage=stage,
            confidence=confidence,
            lesion_count=lesion_count,
            avg_lesion_size=ASSUMED_LESION_SIZE_MM.get(stage, 0.0),
            reasoning=REASONING[stage],
            detected_symptoms=symptoms,
            visual_evidence_regions=_describe_region(survey.necrotic_centroid),
        )
