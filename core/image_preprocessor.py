"""Leaf photo loading, RGBA decoding, downsampling, and oracle payload encoding."""

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image, ImageOps

from core.utils import ClassificationError, ErrorKind


@dataclass(frozen=True)
class LeafImage:
    """A decoded photograph. ``pixels`` is a (height, width, 4) uint8 RGBA array."""
    pixels: np.ndarray
    source: str = ""

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


class ImagePreprocessor:
    """Turns files and byte payloads into LeafImages, and back into JPEG bytes."""

    @staticmethod
    def load(source: Union[str, Path, bytes]) -> LeafImage:
        """Decode an image file path or encoded bytes into a LeafImage."""
        try:
            if isinstance(source, (bytes, bytearray)):
                img = Image.open(io.BytesIO(source))
                label = "<bytes>"
            else:
                img = Image.open(str(source))
                label = str(source)
            with img:
                img = ImageOps.exif_transpose(img)
                rgba = np.array(img.convert("RGBA"), dtype=np.uint8)
        except (OSError, ValueError) as e:
            raise ClassificationError(
                ErrorKind.IMAGE_DECODE_FAILURE, f"Cannot decode image: {e}"
            ) from e
        return LeafImage(pixels=rgba, source=label)

    @staticmethod
    def from_array(pixels: np.ndarray, source: str = "") -> LeafImage:
        """Wrap an RGB or RGBA array. RGB input gets an opaque alpha channel."""
        arr = np.asarray(pixels)
        if arr.ndim != 3 or arr.shape[2] not in (3, 4) or arr.size == 0:
            raise ClassificationError(
                ErrorKind.IMAGE_DECODE_FAILURE,
                f"Expected an (H, W, 3) or (H, W, 4) array, got shape {arr.shape}",
            )
        arr = arr.astype(np.uint8, copy=False)
        if arr.shape[2] == 3:
            alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
            arr = np.concatenate([arr, alpha], axis=2)
        return LeafImage(pixels=arr, source=source)

    @staticmethod
    def downsample(image: LeafImage, size: int) -> np.ndarray:
        """Resize to a size x size RGBA grid with bilinear smoothing."""
        img = Image.fromarray(image.pixels)
        resized = img.resize((size, size), Image.Resampling.BILINEAR)
        return np.array(resized, dtype=np.uint8)

    @staticmethod
    def encode_jpeg(image: LeafImage, quality: int = 85) -> bytes:
        """Encode as JPEG for upload. Alpha is dropped."""
        img = Image.fromarray(image.pixels).convert("RGB")
        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=quality)
        return buffer.getvalue()
