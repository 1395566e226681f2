"""Shared utilities, dataclasses, errors, validation, and platform-specific paths."""

import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional, Tuple

if TYPE_CHECKING:
    from core.disease_database import DiseaseInfo


# --- Type aliases ---

ProgressCallback = Callable[[int, int, str], None]  # (step, total, message)
CancelCheck = Callable[[], bool]  # Returns True if cancelled


# --- Enums ---

class DiseaseStage(Enum):
    HEALTHY = "H0"
    EARLY = "E1"
    MID = "E2"
    SEVERE = "E3"
    INVALID = "N0"

    @property
    def rank(self) -> Optional[int]:
        """Severity rank H0 < E1 < E2 < E3. N0 has no rank."""
        return _STAGE_RANKS.get(self)

    @classmethod
    def from_code(cls, code) -> Optional["DiseaseStage"]:
        """Resolve a stage code like "E2", or None if the code is unknown."""
        if isinstance(code, cls):
            return code
        try:
            return cls(str(code).strip().upper())
        except ValueError:
            return None


_STAGE_RANKS = {
    DiseaseStage.HEALTHY: 0,
    DiseaseStage.EARLY: 1,
    DiseaseStage.MID: 2,
    DiseaseStage.SEVERE: 3,
}


class ErrorKind(Enum):
    IMAGE_DECODE_FAILURE = "image_decode_failure"
    INSUFFICIENT_LEAF_AREA = "insufficient_leaf_area"
    ORACLE_UNAVAILABLE = "oracle_unavailable"
    INVALID_RESPONSE_SCHEMA = "invalid_response_schema"


# --- Errors ---

class ClassificationError(Exception):
    """Raised when an image cannot be classified."""

    def __init__(self, kind: ErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message or kind.value

    def __repr__(self):
        return f"ClassificationError({self.kind.name}, {self.message!r})"


class AnalysisCancelled(Exception):
    """Raised when the caller cancels a diagnosis before it completes."""


# --- Dataclasses ---

@dataclass(frozen=True)
class ImageQuality:
    """Exposure and resolution diagnostics for one image. Advisory only."""
    avg_brightness: float
    is_too_dark: bool
    is_too_bright: bool
    has_shadows: bool
    has_overexposure: bool
    resolution: Tuple[int, int]
    is_low_res: bool

    def issues(self) -> dict:
        """Only the flags that are set, keyed the way reports show them."""
        flags = {
            "too_dark": self.is_too_dark,
            "shadows": self.has_shadows,
            "low_res": self.is_low_res,
            "overexposed": self.has_overexposure,
        }
        return {name: True for name, flagged in flags.items() if flagged}


@dataclass
class Classification:
    """Raw output of a classifier, before severity scoring."""
    stage: DiseaseStage
    confidence: float
    lesion_count: int
    avg_lesion_size: float = 0.0
    reasoning: str = ""
    detected_symptoms: List[str] = field(default_factory=list)
    visual_evidence_regions: str = ""


@dataclass(frozen=True)
class AnalysisResult:
    """A completed diagnosis. Created once per successful analysis."""
    id: str
    stage: DiseaseStage
    confidence: float
    lesion_count: int
    avg_lesion_size: float
    severity_score: float
    timestamp: str
    reasoning: str
    detected_symptoms: Tuple[str, ...]
    visual_evidence_regions: str
    disease: "DiseaseInfo"
    quality: Optional[ImageQuality] = None
    classifier_name: str = ""
    processing_time_ms: int = 0

    @property
    def severity_display(self) -> str:
        return f"{self.severity_score:.1f}"


@dataclass(frozen=True)
class HistoryItem:
    """A saved diagnosis summary."""
    id: str
    timestamp: str
    stage: DiseaseStage
    disease_name: str
    confidence: float
    severity_score: float

    @classmethod
    def from_result(cls, result: AnalysisResult) -> "HistoryItem":
        return cls(
            id=result.id,
            timestamp=result.timestamp,
            stage=result.stage,
            disease_name=result.disease.name,
            confidence=result.confidence,
            severity_score=result.severity_score,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "stage": self.stage.value,
            "diseaseName": self.disease_name,
            "confidence": self.confidence,
            "severityScore": f"{self.severity_score:.1f}",
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryItem":
        """Inverse of to_dict. Unknown stage codes are read back as N0."""
        stage = DiseaseStage.from_code(data.get("stage")) or DiseaseStage.INVALID
        return cls(
            id=str(data["id"]),
            timestamp=str(data.get("timestamp", "")),
            stage=stage,
            disease_name=str(data.get("diseaseName", "")),
            confidence=float(data.get("confidence", 0.0)),
            severity_score=float(data.get("severityScore", 0.0)),
        )


@dataclass
class ValidationResult:
    """Result of image validation."""
    valid: bool
    error_message: str = ""
    image_width: int = 0
    image_height: int = 0
    file_size_bytes: int = 0


# --- Platform-specific paths ---

def get_data_dir() -> Path:
    """Get the platform-specific application data directory."""
    if sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support" / "PhytoScan"
    elif sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home())) / "PhytoScan"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / "phytoscan"
    base.mkdir(parents=True, exist_ok=True)
    return base


def get_history_db_path() -> Path:
    """Get the path to the SQLite history database."""
    return get_data_dir() / "history.db"


# --- Validation ---

SUPPORTED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".webp", ".tiff", ".tif"}


def validate_leaf_image(file_path: str) -> ValidationResult:
    """Validate that a file is a readable leaf photograph."""
    if not file_path:
        return ValidationResult(valid=False, error_message="No file selected.")

    path = Path(file_path)

    if not path.exists():
        return ValidationResult(valid=False, error_message="File not found.")

    if not path.is_file():
        return ValidationResult(valid=False, error_message="Path is not a file.")

    file_size = path.stat().st_size
    if file_size == 0:
        return ValidationResult(valid=False, error_message="File is empty.")

    ext = path.suffix.lower()
    if ext not in SUPPORTED_IMAGE_EXTENSIONS:
        return ValidationResult(
            valid=False,
            error_message=f"Unsupported image format: {ext}",
        )

    try:
        from PIL import Image
        with Image.open(str(path)) as img:
            width, height = img.size
    except (OSError, ValueError):
        return ValidationResult(valid=False, error_message="Cannot read image.")

    return ValidationResult(
        valid=True,
        image_width=width,
        image_height=height,
        file_size_bytes=file_size,
    )


# --- Formatting ---

def format_file_size(size_bytes: int) -> str:
    """Format byte count as human-readable string."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"
