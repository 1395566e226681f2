"""Shared test fixtures for PhytoScan."""

import os
import tempfile
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from core.disease_database import lookup
from core.utils import AnalysisResult, DiseaseStage, ImageQuality

GRID = 120
HEALTHY_GREEN = (30, 160, 40, 255)
NECROTIC_BROWN = (100, 120, 20, 255)   # still green-dominant, r > 0.75 * g
BACKGROUND = (200, 200, 200, 255)      # not green-dominant


def build_grid(leaf: int, necrotic: int, size: int = GRID) -> np.ndarray:
    """A size x size RGBA grid with exactly ``leaf`` leaf pixels, of which
    ``necrotic`` are necrotic. Remaining pixels are background."""
    assert necrotic <= leaf <= size * size
    flat = np.empty((size * size, 4), dtype=np.uint8)
    flat[:] = BACKGROUND
    flat[:leaf] = HEALTHY_GREEN
    flat[:necrotic] = NECROTIC_BROWN
    return flat.reshape(size, size, 4)


@pytest.fixture(autouse=True)
def _offscreen_qt():
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def grid_factory():
    return build_grid


@pytest.fixture
def healthy_grid():
    """Every pixel is healthy leaf tissue."""
    return build_grid(leaf=GRID * GRID, necrotic=0)


@pytest.fixture
def sample_leaf_image(tmp_dir):
    """A 120x120 PNG of a leaf with a mid-stage necrotic share (15%)."""
    path = tmp_dir / "leaf.png"
    Image.fromarray(build_grid(leaf=1000, necrotic=150)).save(path)
    return str(path)


@pytest.fixture
def sample_rgb_image(tmp_dir):
    """A random 224x224 RGB image."""
    img = Image.fromarray(np.random.randint(0, 255, (224, 224, 3), dtype=np.uint8))
    path = tmp_dir / "sample_rgb.png"
    img.save(path)
    return str(path)


@pytest.fixture
def make_result():
    """Factory for AnalysisResults with sensible defaults."""
    counter = {"n": 0}

    def _make(stage=DiseaseStage.MID, **overrides):
        counter["n"] += 1
        fields = dict(
            id=f"result-{counter['n']}",
            stage=stage,
            confidence=0.88,
            lesion_count=33,
            avg_lesion_size=8.5,
            severity_score=45.0,
            timestamp=f"2026-10-19T10:00:{counter['n'] % 60:02d}",
            reasoning="Clustered necrotic regions observed.",
            detected_symptoms=("Brown-grey lesions",),
            visual_evidence_regions="lower-left of the leaf",
            disease=lookup(stage),
        )
        fields.update(overrides)
        return AnalysisResult(**fields)

    return _make


@pytest.fixture
def sample_analysis_result(make_result):
    return make_result(
        stage=DiseaseStage.MID,
        quality=ImageQuality(
            avg_brightness=62.0,
            is_too_dark=True,
            is_too_bright=False,
            has_shadows=True,
            has_overexposure=False,
            resolution=(120, 120),
            is_low_res=True,
        ),
        classifier_name="local-heuristic",
    )
