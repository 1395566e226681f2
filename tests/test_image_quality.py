"""Tests for core.image_quality module."""

import numpy as np
import pytest

from core.image_quality import analyze_image_quality
from core.utils import ClassificationError, ErrorKind


def solid(width, height, rgb):
    arr = np.empty((height, width, 4), dtype=np.uint8)
    arr[..., :3] = rgb
    arr[..., 3] = 255
    return arr


class TestBrightness:
    def test_black_image(self):
        q = analyze_image_quality(solid(10, 10, (0, 0, 0)), 10, 10)
        assert q.avg_brightness == 0.0
        assert q.is_too_dark
        assert q.has_shadows
        assert not q.is_too_bright
        assert not q.has_overexposure

    def test_white_image(self):
        q = analyze_image_quality(solid(10, 10, (255, 255, 255)), 10, 10)
        assert q.avg_brightness == 255.0
        assert q.is_too_bright
        assert q.has_overexposure
        assert not q.is_too_dark

    def test_unweighted_channel_mean(self):
        q = analyze_image_quality(solid(4, 4, (30, 160, 40)), 4, 4)
        assert q.avg_brightness == pytest.approx(230 / 3)

    def test_thresholds_are_strict(self):
        # Brightness exactly 200 and exactly 80 sit on the boundaries.
        q = analyze_image_quality(solid(4, 4, (200, 200, 200)), 4, 4)
        assert not q.is_too_bright
        assert not q.has_overexposure
        q = analyze_image_quality(solid(4, 4, (80, 80, 80)), 4, 4)
        assert not q.is_too_dark

    def test_alpha_ignored(self):
        arr = solid(4, 4, (100, 100, 100))
        arr[..., 3] = 0
        assert analyze_image_quality(arr, 4, 4).avg_brightness == 100.0


class TestExposureRatios:
    def test_shadow_ratio_above_threshold(self):
        arr = solid(10, 10, (120, 120, 120))
        arr.reshape(-1, 4)[:31, :3] = 10   # 31% dark
        q = analyze_image_quality(arr, 10, 10)
        assert q.has_shadows
        assert not q.is_too_dark

    def test_shadow_ratio_at_threshold(self):
        arr = solid(10, 10, (120, 120, 120))
        arr.reshape(-1, 4)[:30, :3] = 10   # exactly 30%
        assert not analyze_image_quality(arr, 10, 10).has_shadows

    def test_overexposure_ratio(self):
        arr = solid(10, 10, (120, 120, 120))
        arr.reshape(-1, 4)[:40, :3] = 250
        assert analyze_image_quality(arr, 10, 10).has_overexposure


class TestResolution:
    def test_low_res(self):
        q = analyze_image_quality(solid(399, 1, (0, 0, 0)), 399, 1)
        assert q.resolution == (399, 1)
        assert q.is_low_res

    def test_one_side_small(self):
        q = analyze_image_quality(solid(800, 300, (0, 0, 0)), 800, 300)
        assert q.is_low_res

    def test_large_enough(self):
        q = analyze_image_quality(solid(400, 400, (0, 0, 0)), 400, 400)
        assert not q.is_low_res


class TestInput:
    def test_flat_buffer(self):
        buffer = bytes([60, 60, 60, 255]) * 6
        q = analyze_image_quality(buffer, 3, 2)
        assert q.avg_brightness == 60.0
        assert q.resolution == (3, 2)

    def test_buffer_size_mismatch(self):
        with pytest.raises(ClassificationError) as exc:
            analyze_image_quality(bytes(10), 3, 2)
        assert exc.value.kind == ErrorKind.IMAGE_DECODE_FAILURE

    def test_zero_dimensions(self):
        with pytest.raises(ClassificationError):
            analyze_image_quality(b"", 0, 0)

    def test_input_not_modified(self):
        arr = solid(5, 5, (90, 10, 200))
        before = arr.copy()
        analyze_image_quality(arr, 5, 5)
        assert np.array_equal(arr, before)

    def test_reproducible(self):
        rng = np.random.default_rng(7)
        arr = rng.integers(0, 256, (50, 60, 4), dtype=np.uint8)
        assert analyze_image_quality(arr, 60, 50) == analyze_image_quality(arr.copy(), 60, 50)


class TestIssues:
    def test_only_flagged_issues(self):
        q = analyze_image_quality(solid(10, 10, (0, 0, 0)), 10, 10)
        assert q.issues() == {"too_dark": True, "shadows": True, "low_res": True}

    def test_no_issues(self):
        q = analyze_image_quality(solid(400, 400, (120, 130, 110)), 400, 400)
        assert q.issues() == {}
