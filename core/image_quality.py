"""Exposure and resolution diagnostics for leaf photographs.

The result is advisory: the engine attaches it to the AnalysisResult but never
blocks or adjusts a classification because of it.
"""

from typing import Union

import numpy as np

from core.utils import ClassificationError, ErrorKind, ImageQuality

DARK_PIXEL_MAX = 50        # brightness below this counts as shadow
BRIGHT_PIXEL_MIN = 200     # brightness above this counts as overexposed
TOO_DARK_AVG = 80
TOO_BRIGHT_AVG = 200
SHADOW_RATIO = 0.3
OVEREXPOSURE_RATIO = 0.3
MIN_RESOLUTION = 400


def analyze_image_quality(
    pixels: Union[bytes, bytearray, np.ndarray], width: int, height: int
) -> ImageQuality:
    """Compute an ImageQuality record from row-major RGBA pixel data.

    ``pixels`` may be a flat RGBA buffer of ``width * height * 4`` bytes or an
    array of shape (height, width, 4). Brightness is the unweighted mean of
    R, G and B. The input is not modified.
    """
    expected = width * height * 4
    if width <= 0 or height <= 0:
        raise ClassificationError(
            ErrorKind.IMAGE_DECODE_FAILURE, f"Invalid dimensions {width}x{height}"
        )

    if isinstance(pixels, np.ndarray):
        flat = pixels.reshape(-1) if pixels.size == expected else None
    else:
        flat = np.frombuffer(bytes(pixels), dtype=np.uint8)
        if flat.size != expected:
            flat = None
    if flat is None:
        raise ClassificationError(
            ErrorKind.IMAGE_DECODE_FAILURE,
            f"Pixel buffer does not match {width}x{height} RGBA",
        )

    rgb = flat.reshape(-1, 4)[:, :3].astype(np.float64)
    brightness = rgb.sum(axis=1) / 3.0
    total = brightness.size

    avg_brightness = float(brightness.sum() / total)
    dark_ratio = np.count_nonzero(brightness < DARK_PIXEL_MAX) / total
    bright_ratio = np.count_nonzero(brightness > BRIGHT_PIXEL_MIN) / total

    return ImageQuality(
        avg_brightness=avg_brightness,
        is_too_dark=avg_brightness < TOO_DARK_AVG,
        is_too_bright=avg_brightness > TOO_BRIGHT_AVG,
        has_shadows=dark_ratio > SHADOW_RATIO,
        has_overexposure=bright_ratio > OVEREXPOSURE_RATIO,
        resolution=(width, height),
        is_low_res=width < MIN_RESOLUTION or height < MIN_RESOLUTION,
    )
