"""Severity score (0-100) from stage, lesion count and average lesion size."""

import math
from typing import Union

from core.utils import DiseaseStage

# stage -> (factor, cap). Each cap stays below the next stage's ceiling.
STAGE_SCALING = {
    DiseaseStage.EARLY: (0.2, 15.0),
    DiseaseStage.MID: (0.8, 45.0),
    DiseaseStage.SEVERE: (2.0, 100.0),
}

MAX_SCORE = 100.0


def _non_negative(value) -> float:
    """Negative, NaN and infinite inputs count as 0."""
    value = float(value or 0)
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


def calculate_severity(
    stage: Union[DiseaseStage, str], lesion_count: float, avg_lesion_size: float
) -> float:
    """Score a diagnosis as min(lesions * size * factor, cap), to one decimal.

    H0, N0 and unknown stages always score 0.0.
    """
    resolved = DiseaseStage.from_code(stage)
    if resolved not in STAGE_SCALING:
        return 0.0

    factor, cap = STAGE_SCALING[resolved]
    lesions = _non_negative(lesion_count)
    size = _non_negative(avg_lesion_size)

    score = min(lesions * size * factor, cap, MAX_SCORE)
    return round(max(score, 0.0), 1)
