"""Engine configuration: heuristic thresholds, oracle settings, ledger policy."""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from PyQt6.QtCore import QSettings

logger = logging.getLogger(__name__)

ORGANIZATION = "PhytoScan"
APPLICATION = "PhytoScan"

CLASSIFIER_LOCAL = "local"
CLASSIFIER_REMOTE = "remote"
CLASSIFIERS = (CLASSIFIER_LOCAL, CLASSIFIER_REMOTE)


@dataclass(frozen=True)
class HeuristicThresholds:
    """Constants for the offline pixel-ratio classifier."""
    grid_size: int = 120                  # downsampled grid is grid_size x grid_size
    green_min: int = 45                   # leaf tissue needs g above this
    necrotic_red_factor: float = 0.75     # r > factor * g means browning
    necrotic_dark_max: int = 60           # r, g, b all below this means dead tissue
    min_leaf_pixels: int = 800
    severe_ratio: float = 0.22
    mid_ratio: float = 0.10
    early_ratio: float = 0.02
    pixels_per_lesion: float = 4.5
    confidence: float = 0.88
    invalid_confidence: float = 0.40


@dataclass
class OracleSettings:
    """Connection settings for the remote vision oracle."""
    api_key: str = ""
    model: str = "gemini-3-flash-preview"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout_s: Optional[float] = None
    mime_type: str = "image/jpeg"

    @property
    def endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/models/{self.model}:generateContent"


@dataclass
class EngineConfig:
    """Top-level configuration for a DiagnosisEngine."""
    classifier: str = CLASSIFIER_LOCAL
    history_capacity: int = 20
    record_invalid_diagnoses: bool = False
    thresholds: HeuristicThresholds = field(default_factory=HeuristicThresholds)
    oracle: OracleSettings = field(default_factory=OracleSettings)


def _settings(settings: Optional[QSettings]) -> QSettings:
    return settings if settings is not None else QSettings(ORGANIZATION, APPLICATION)


def load_config(settings: Optional[QSettings] = None) -> EngineConfig:
    """Build an EngineConfig from saved settings, then environment overrides.

    Environment variables win over saved settings:
    PHYTOSCAN_CLASSIFIER, PHYTOSCAN_ORACLE_MODEL, GEMINI_API_KEY (or API_KEY).
    """
    settings = _settings(settings)
    config = EngineConfig()

    classifier = os.environ.get(
        "PHYTOSCAN_CLASSIFIER", settings.value("classifier", CLASSIFIER_LOCAL)
    )
    if classifier not in CLASSIFIERS:
        logger.warning("Unknown classifier %r, using %r", classifier, CLASSIFIER_LOCAL)
        classifier = CLASSIFIER_LOCAL
    config.classifier = classifier

    capacity = settings.value("history_capacity", 20, type=int)
    if capacity < 1:
        logger.warning("History capacity %d is not positive, using 20", capacity)
        capacity = 20
    config.history_capacity = capacity
    config.record_invalid_diagnoses = settings.value(
        "record_invalid_diagnoses", False, type=bool
    )

    config.oracle.model = os.environ.get(
        "PHYTOSCAN_ORACLE_MODEL", settings.value("oracle_model", config.oracle.model)
    )
    config.oracle.api_key = (
        os.environ.get("GEMINI_API_KEY")
        or os.environ.get("API_KEY")
        or settings.value("oracle_api_key", "")
    )
    return config


def save_config(config: EngineConfig, settings: Optional[QSettings] = None):
    """Persist the user-editable parts of a config. The API key is never saved."""
    settings = _settings(settings)
    settings.setValue("classifier", config.classifier)
    settings.setValue("history_capacity", config.history_capacity)
    settings.setValue("record_invalid_diagnoses", config.record_invalid_diagnoses)
    settings.setValue("oracle_model", config.oracle.model)
    settings.sync()
